from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from src.database.engine import async_session, document_session, messaging_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a relational order-store session."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_document_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a document-store session."""
    async with document_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_messaging_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a messaging-store session."""
    async with messaging_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
