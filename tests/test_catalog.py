"""Tests del catálogo JSON, usuarios de demo y lookup de items."""

from __future__ import annotations

import pytest

from auth.hashing import hash_password, verify_password
from db import repo_json
from services.item_lookup import CatalogItemLookup, ItemLookup, hydrate
from services.models import FavoriteRecord, ItemSnapshot

from conftest import T1, T2


def test_seed_creates_users_and_items() -> None:
    db = repo_json.seed_if_empty(repo_json.default_db())

    assert len(db["items"]) >= 3
    u = repo_json.find_user_by_email(db, "  DEMO@demo.com ")
    assert u is not None
    assert verify_password("Demo123!", u["password_hash"])
    assert not verify_password("otra", u["password_hash"])

    # ya sembrado: no duplica
    again = repo_json.seed_if_empty(repo_json.load_db())
    assert len(again["users"]) == len(db["users"])


def test_verify_password_rejects_unknown_hash() -> None:
    assert verify_password("x", "") is False
    assert verify_password("x", "no-es-un-hash") is False
    assert verify_password("x", hash_password("x")) is True


@pytest.mark.asyncio
async def test_catalog_lookup() -> None:
    db = {"items": [{"id": "i1", "name": "Ajiaco", "category": "Sopas", "thumbnail": "a.jpg"}]}
    lookup = CatalogItemLookup(lambda: db)

    assert await lookup.get_by_id("i1") == ItemSnapshot(name="Ajiaco", thumbnail="a.jpg", category="Sopas")
    assert await lookup.get_by_id("nope") is None


@pytest.mark.asyncio
async def test_hydrate_tolerates_lookup_errors() -> None:
    class _Flaky(ItemLookup):
        async def get_by_id(self, item_id):
            if item_id == "bad":
                raise RuntimeError("servicio caído")
            return ItemSnapshot(name=item_id.upper())

    records = [
        FavoriteRecord(id="1", item_id="ok", added_at=T1),
        FavoriteRecord(id="2", item_id="bad", added_at=T2),
    ]
    out = await hydrate(records, _Flaky())

    assert out[0].item_snapshot.name == "OK"
    assert out[1].item_snapshot is None
