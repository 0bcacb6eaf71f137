from src.database.base import (
    Base,
    DocumentBase,
    MessagingBase,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)
from src.database.engine import (
    async_session,
    document_engine,
    document_session,
    engine,
    messaging_engine,
    messaging_session,
    sync_engine,
)
from src.database.session import get_db, get_document_db, get_messaging_db

__all__ = [
    "Base",
    "DocumentBase",
    "MessagingBase",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "async_session",
    "document_engine",
    "document_session",
    "engine",
    "messaging_engine",
    "messaging_session",
    "sync_engine",
    "get_db",
    "get_document_db",
    "get_messaging_db",
]
