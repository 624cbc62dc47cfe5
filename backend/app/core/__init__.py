from app.core.config import Settings, get_settings
from app.core.database import Base, engine, get_db
from app.core.security import (
    ACCESS_TOKEN,
    REFRESH_TOKEN,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)

__all__ = [
    "Settings",
    "get_settings",
    "Base",
    "engine",
    "get_db",
    "ACCESS_TOKEN",
    "REFRESH_TOKEN",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
    "get_password_hash",
    "verify_password",
]
