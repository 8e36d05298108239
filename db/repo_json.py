from __future__ import annotations
import json, os, uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from filelock import FileLock

from auth.hashing import hash_password
from services.validators import normalize_email

DATA_DIR = os.environ.get("MARKET_DATA_DIR", "data")
DB_PATH = os.path.join(DATA_DIR, "db.json")
DB_LOCK = os.path.join(DATA_DIR, "db.json.lock")
REMOTE_FAVORITES_PATH = os.path.join(DATA_DIR, "remote_favorites.json")
DEVICE_DIR = os.environ.get("FAVORITES_DEVICE_DIR", "")

def now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")

def new_id() -> str:
    return str(uuid.uuid4())

def ensure_dirs():
    os.makedirs(DATA_DIR, exist_ok=True)

def default_db() -> Dict[str, Any]:
    return {"meta":{"version":1,"created_at":now_iso()},"users":[],"items":[]}

def load_db() -> Dict[str, Any]:
    ensure_dirs()
    if not os.path.exists(DB_PATH):
        with FileLock(DB_LOCK):
            with open(DB_PATH, "w", encoding="utf-8") as f:
                json.dump(default_db(), f, ensure_ascii=False, indent=2)
    with FileLock(DB_LOCK):
        with open(DB_PATH, "r", encoding="utf-8") as f:
            return json.load(f)

def save_db(db: Dict[str, Any]) -> None:
    ensure_dirs()
    with FileLock(DB_LOCK):
        with open(DB_PATH, "w", encoding="utf-8") as f:
            json.dump(db, f, ensure_ascii=False, indent=2)

def find_user_by_email(db: Dict[str, Any], email: str) -> Optional[Dict[str, Any]]:
    email = normalize_email(email)
    for u in db.get("users", []):
        if u["email"] == email:
            return u
    return None

def find_item(db: Dict[str, Any], item_id: str) -> Optional[Dict[str, Any]]:
    for it in db.get("items", []):
        if it.get("id") == item_id:
            return it
    return None

def seed_if_empty(db: Dict[str, Any]) -> Dict[str, Any]:
    if db.get("users"):
        return db

    db.setdefault("users", [])
    db.setdefault("items", [])

    db["users"].append({
        "id": new_id(), "email": "demo@demo.com",
        "password_hash": hash_password("Demo123!"),
        "status":"ACTIVE",
        "created_at": now_iso(),
    })
    db["users"].append({
        "id": new_id(), "email": "otra@demo.com",
        "password_hash": hash_password("Otra123!"),
        "status":"ACTIVE",
        "created_at": now_iso(),
    })

    demo_items = [
        {"name":"Ajiaco santafereño","category":"Sopas","thumbnail":""},
        {"name":"Arepa de choclo","category":"Desayunos","thumbnail":""},
        {"name":"Bandeja paisa","category":"Platos fuertes","thumbnail":""},
        {"name":"Brownies x6","category":"Postres","thumbnail":""},
        {"name":"Café de origen 250g","category":"Bebidas","thumbnail":""},
        {"name":"Empanadas de pipián","category":"Entradas","thumbnail":""},
    ]
    for it in demo_items:
        db["items"].append({
            "id": new_id(),
            "name": it["name"],
            "category": it["category"],
            "thumbnail": it["thumbnail"],
            "created_at": now_iso(),
        })

    save_db(db)
    return db
