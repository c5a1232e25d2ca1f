# app/core/passwords.py
import hashlib
import secrets

import bcrypt

# bcrypt solo considera los primeros 72 bytes
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # hash corrupto o contraseña fuera de rango
        return False


def generate_reset_token() -> str:
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """Solo el SHA-256 del token se guarda en BD."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
