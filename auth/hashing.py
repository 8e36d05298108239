from __future__ import annotations
import os
from passlib.context import CryptContext

# en tests se baja con PASSWORD_HASH_ROUNDS para que sea rápido
_ROUNDS = int(os.environ.get("PASSWORD_HASH_ROUNDS", "290000"))

_pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__rounds=_ROUNDS,
)

def hash_password(password: str) -> str:
    return _pwd_context.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return _pwd_context.verify(password, password_hash)
    except ValueError:
        # hash con formato desconocido
        return False
