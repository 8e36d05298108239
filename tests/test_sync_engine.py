"""Tests del motor de sincronización: inicialización por identidad y merge."""

from __future__ import annotations

import asyncio
import json

import pytest

from auth.identity import Identity, IdentityStream
from db.local_store import LOCAL_STORAGE_KEY, LocalStore
from services.favorites_state import FavoritesState
from services.sync_engine import SyncEngine

from conftest import T1, T2, T3, item_ids, seed_local, seed_remote


# ---------------------------------------------------------------------------
# Visitante
# ---------------------------------------------------------------------------


class TestAnonymous:
    @pytest.mark.asyncio
    async def test_publishes_local_records(self, engine, local, state) -> None:
        """Sin cuenta la foto sale del store local, con ids determinísticos."""
        seed_local(local, ("a", T1), ("b", T2))
        await engine.start()

        snap = state.current()
        assert item_ids(snap) == ["b", "a"]
        assert [r.id for r in snap] == ["local_b", "local_a"]
        assert all(r.owner_id is None for r in snap)

    @pytest.mark.asyncio
    async def test_add_persists_and_reloads(self, port, remote, identity) -> None:
        """add() como visitante persiste {itemId, addedAt}; otro motor lo relee."""
        first = SyncEngine(FavoritesState(), LocalStore(port), remote, identity)
        await first.start()
        await first.add("x")

        raw = json.loads(port.get(LOCAL_STORAGE_KEY).decode("utf-8"))
        assert raw[0]["itemId"] == "x"
        assert raw[0]["addedAt"].endswith("Z")

        state2 = FavoritesState()
        second = SyncEngine(state2, LocalStore(port), remote, IdentityStream())
        await second.start()
        assert item_ids(state2.current()) == ["x"]
        assert state2.current()[0].id == "local_x"

    @pytest.mark.asyncio
    async def test_malformed_local_is_empty(self, engine, port, state) -> None:
        port.set(LOCAL_STORAGE_KEY, b"{esto no es json")
        await engine.start()
        assert state.current() == ()


# ---------------------------------------------------------------------------
# Con cuenta, sin merge
# ---------------------------------------------------------------------------


class TestAuthenticated:
    @pytest.mark.asyncio
    async def test_publishes_remote_newest_first(self, state, local, remote) -> None:
        await seed_remote(remote, "u1", ("r1", "a", T1), ("r3", "c", T3), ("r2", "b", T2))
        engine = SyncEngine(state, local, remote, IdentityStream(Identity.authenticated("u1")))
        await engine.start()
        assert item_ids(state.current()) == ["c", "b", "a"]
        assert remote.commits == 0

    @pytest.mark.asyncio
    async def test_remote_read_failure_falls_back_to_local(self, state, local, remote) -> None:
        """Si el remoto no responde se muestra lo local y no se lanza nada."""
        seed_local(local, ("a", T1))
        remote.fail_read = True
        engine = SyncEngine(state, local, remote, IdentityStream(Identity.authenticated("u1")))
        await engine.start()

        assert item_ids(state.current()) == ["a"]
        assert not engine.merge_latched
        assert local.read()[0].item_id == "a"

    @pytest.mark.asyncio
    async def test_remote_read_failure_without_local_is_empty(self, state, local, remote) -> None:
        remote.fail_read = True
        engine = SyncEngine(state, local, remote, IdentityStream(Identity.authenticated("u1")))
        await engine.start()
        assert state.current() == ()

    @pytest.mark.asyncio
    async def test_add_of_existing_account_record_keeps_order(self, state, local, remote) -> None:
        """Tras caer a lo local, add() puede devolver un registro viejo de la cuenta."""
        seed_local(local, ("a", T2))
        await seed_remote(remote, "u1", ("rx", "x", T1))
        remote.fail_read = True
        engine = SyncEngine(state, local, remote, IdentityStream(Identity.authenticated("u1")))
        await engine.start()

        stored = await engine.add("x")

        assert stored.id == "rx"
        assert stored.added_at == T1
        assert item_ids(state.current()) == ["a", "x"]


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


class _StaleFirstRead:
    """La primera lectura devuelve la cuenta vacía; el resto va al store real."""

    def __init__(self, inner):
        self.inner = inner
        self.reads = 0

    def batch(self):
        return self.inner.batch()

    async def list_by_owner(self, owner_id):
        self.reads += 1
        if self.reads == 1:
            return []
        return await self.inner.list_by_owner(owner_id)

    async def write(self, owner_id, record):
        return await self.inner.write(owner_id, record)

    async def delete_where(self, owner_id, item_id):
        return await self.inner.delete_where(owner_id, item_id)

    async def commit(self, batch):
        return await self.inner.commit(batch)


class TestMerge:
    @pytest.mark.asyncio
    async def test_merge_moves_unique_local_records(self, state, local, remote) -> None:
        """local {a@t1, b@t2} + remoto {b@t3} -> remoto {a@t1, b@t3}."""
        seed_local(local, ("a", T1), ("b", T2))
        await seed_remote(remote, "u1", ("rb", "b", T3))
        engine = SyncEngine(state, local, remote, IdentityStream(Identity.authenticated("u1")))
        notices = []
        engine.merge_completed.subscribe(notices.append)

        await engine.start()

        stored = {r.item_id: r for r in await remote.list_by_owner("u1")}
        assert set(stored) == {"a", "b"}
        assert stored["a"].added_at == T1
        assert stored["a"].owner_id == "u1"
        assert stored["b"].added_at == T3
        assert stored["b"].id == "rb"
        assert local.read() == []
        assert engine.merge_latched
        assert remote.commits == 1
        assert notices == [1]
        assert item_ids(state.current()) == ["b", "a"]

    @pytest.mark.asyncio
    async def test_merge_failure_keeps_local_data(self, state, local, remote) -> None:
        seed_local(local, ("a", T1), ("b", T2))
        await seed_remote(remote, "u1", ("rb", "b", T3))
        remote.fail_commit = True
        identity = IdentityStream(Identity.authenticated("u1"))
        engine = SyncEngine(state, local, remote, identity)
        notices = []
        engine.merge_completed.subscribe(notices.append)

        await engine.start()

        assert item_ids(local.read()) == ["a", "b"]
        assert item_ids(state.current()) == ["b"]
        assert not engine.merge_latched
        assert notices == []

        # reintento en la siguiente emisión de identidad
        remote.fail_commit = False
        await identity.emit(Identity.authenticated("u1"))
        assert engine.merge_latched
        assert local.read() == []
        assert sorted(item_ids(state.current())) == ["a", "b"]
        assert notices == [1]

    @pytest.mark.asyncio
    async def test_merge_runs_once_per_session(self, state, local, remote) -> None:
        seed_local(local, ("a", T1))
        identity = IdentityStream(Identity.authenticated("u1"))
        engine = SyncEngine(state, local, remote, identity)
        await engine.start()
        assert remote.commits == 1

        await identity.emit(Identity.authenticated("u1"))
        assert remote.commits == 1
        assert local.read() == []

        # logout, favorito local nuevo, login otra vez: el latch ya está puesto
        await identity.emit(Identity.anonymous())
        await engine.add("c")
        await identity.emit(Identity.authenticated("u1"))

        assert remote.commits == 1
        assert item_ids(local.read()) == ["c"]
        assert item_ids(state.current()) == ["a"]

    @pytest.mark.asyncio
    async def test_nothing_unique_leaves_local_untouched(self, state, local, remote) -> None:
        """Todo lo local ya está en la cuenta: no hay lote ni latch."""
        seed_local(local, ("b", T2))
        await seed_remote(remote, "u1", ("rb", "b", T3))
        engine = SyncEngine(state, local, remote, IdentityStream(Identity.authenticated("u1")))
        notices = []
        engine.merge_completed.subscribe(notices.append)

        await engine.start()

        assert remote.commits == 0
        assert not engine.merge_latched
        assert item_ids(local.read()) == ["b"]
        assert state.current()[0].id == "rb"
        assert state.current()[0].added_at == T3
        assert notices == []

    @pytest.mark.asyncio
    async def test_items_already_in_account_keep_the_account_record(self, state, local, remote) -> None:
        """
        La lectura inicial no ve "a" (otro proceso lo migró antes).
        El lote no lo pisa y la foto muestra el registro que quedó en la cuenta.
        """
        seed_local(local, ("a", T1), ("b", T2))
        await seed_remote(remote, "u1", ("rwin", "a", T3))
        stale = _StaleFirstRead(remote)
        engine = SyncEngine(state, local, stale, IdentityStream(Identity.authenticated("u1")))
        notices = []
        engine.merge_completed.subscribe(notices.append)

        await engine.start()

        stored = await remote.list_by_owner("u1")
        assert [r.id for r in state.current()] == [r.id for r in stored]
        assert state.current()[0].id == "rwin"
        assert state.current()[0].added_at == T3
        assert item_ids(state.current()) == ["a", "b"]
        assert notices == [1]
        assert engine.merge_latched
        assert local.read() == []

    @pytest.mark.asyncio
    async def test_nothing_written_means_no_notice(self, state, local, remote) -> None:
        seed_local(local, ("a", T1))
        await seed_remote(remote, "u1", ("rwin", "a", T3))
        engine = SyncEngine(
            state, local, _StaleFirstRead(remote), IdentityStream(Identity.authenticated("u1"))
        )
        notices = []
        engine.merge_completed.subscribe(notices.append)

        await engine.start()

        assert [(r.id, r.added_at) for r in state.current()] == [("rwin", T3)]
        assert notices == []
        assert local.read() == []


# ---------------------------------------------------------------------------
# Orden entre inicialización y mutaciones
# ---------------------------------------------------------------------------


class _GatedRemote:
    """Envuelve un store y detiene list_by_owner hasta abrir la compuerta."""

    def __init__(self, inner):
        self.inner = inner
        self.gate = asyncio.Event()

    def batch(self):
        return self.inner.batch()

    async def list_by_owner(self, owner_id):
        await self.gate.wait()
        return await self.inner.list_by_owner(owner_id)

    async def write(self, owner_id, record):
        return await self.inner.write(owner_id, record)

    async def delete_where(self, owner_id, item_id):
        return await self.inner.delete_where(owner_id, item_id)

    async def commit(self, batch):
        return await self.inner.commit(batch)


class TestOrdering:
    @pytest.mark.asyncio
    async def test_mutation_waits_for_initialization(self, state, local, remote) -> None:
        await seed_remote(remote, "u1", ("ra", "a", T1))
        gated = _GatedRemote(remote)
        identity = IdentityStream(Identity.authenticated("u1"))
        engine = SyncEngine(state, local, gated, identity)

        init = asyncio.create_task(engine.handle_identity(identity.current()))
        await asyncio.sleep(0)
        add = asyncio.create_task(engine.add("z"))
        await asyncio.sleep(0)
        assert not add.done()

        gated.gate.set()
        await asyncio.gather(init, add)

        assert item_ids(state.current()) == ["z", "a"]
        assert sorted(item_ids(await remote.list_by_owner("u1"))) == ["a", "z"]

    @pytest.mark.asyncio
    async def test_back_to_back_calls_apply_in_order(self, state, local, remote) -> None:
        """add(x); remove(x) sin esperar: gana la última llamada."""
        engine = SyncEngine(state, local, remote, IdentityStream(Identity.authenticated("u1")))
        await engine.start()

        await asyncio.gather(engine.add("x"), engine.remove("x"))

        assert state.current() == ()
        assert await remote.list_by_owner("u1") == []
