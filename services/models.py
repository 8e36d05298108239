from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOCAL_ID_PREFIX = "local_"


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_iso(text: str) -> datetime:
    """
    Acepta ISO-8601 con o sin 'Z'.
    Fechas sin zona se interpretan como UTC.
    """
    s = (text or "").strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class ItemSnapshot:
    """Datos de despliegue denormalizados (pueden estar desactualizados)."""
    name: str = ""
    thumbnail: str = ""
    category: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ItemSnapshot"]:
        if not data:
            return None
        return cls(
            name=str(data.get("name") or ""),
            thumbnail=str(data.get("thumbnail") or ""),
            category=str(data.get("category") or ""),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "thumbnail": self.thumbnail, "category": self.category}


@dataclass(frozen=True)
class LocalFavoriteRecord:
    item_id: str
    added_at: datetime

    def to_dict(self) -> Dict[str, str]:
        return {"itemId": self.item_id, "addedAt": to_iso(self.added_at)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocalFavoriteRecord":
        item_id = data.get("itemId")
        if not isinstance(item_id, str) or not item_id:
            raise ValueError(f"itemId inválido: {item_id!r}")
        return cls(item_id=item_id, added_at=parse_iso(str(data.get("addedAt", ""))))


@dataclass(frozen=True)
class FavoriteRecord:
    id: str
    item_id: str
    added_at: datetime
    owner_id: Optional[str] = None
    item_snapshot: Optional[ItemSnapshot] = field(default=None, compare=False)

    @property
    def is_local(self) -> bool:
        return self.owner_id is None

    @classmethod
    def from_local(cls, local: LocalFavoriteRecord) -> "FavoriteRecord":
        # id determinístico: el mismo item local siempre produce el mismo id
        return cls(
            id=f"{LOCAL_ID_PREFIX}{local.item_id}",
            item_id=local.item_id,
            added_at=local.added_at,
        )

    def to_remote_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "itemId": self.item_id,
            "ownerId": self.owner_id,
            "addedAt": to_iso(self.added_at),
        }
        if self.item_snapshot:
            out.update(self.item_snapshot.to_dict())
        return out

    @classmethod
    def from_remote_dict(cls, record_id: str, data: Dict[str, Any]) -> "FavoriteRecord":
        return cls(
            id=record_id,
            item_id=str(data["itemId"]),
            owner_id=data.get("ownerId"),
            added_at=parse_iso(str(data.get("addedAt", ""))),
            item_snapshot=ItemSnapshot.from_dict(
                {k: data.get(k) for k in ("name", "thumbnail", "category") if data.get(k)}
            ),
        )


def newest_first(records) -> list[FavoriteRecord]:
    return sorted(records, key=lambda r: r.added_at, reverse=True)
