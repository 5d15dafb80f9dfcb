# booking_api/database/connection.py
import asyncpg
import json
from typing import AsyncIterator, Optional
from booking_api.config import settings
import logging

logger = logging.getLogger(__name__)

async def _init_connection(connection: asyncpg.Connection):
    """Decode JSONB columns to Python objects on every pooled connection"""
    await connection.set_type_codec(
        'jsonb',
        encoder=json.dumps,
        decoder=json.loads,
        schema='pg_catalog'
    )

class DatabaseConnection:
    _pool: Optional[asyncpg.Pool] = None

    @classmethod
    async def get_pool(cls) -> asyncpg.Pool:
        """Get or create database connection pool"""
        if cls._pool is None:
            try:
                if not settings.database_url:
                    raise ValueError("DATABASE_URL environment variable not set")

                cls._pool = await asyncpg.create_pool(
                    settings.database_url,
                    min_size=settings.db_pool_min_size,
                    max_size=settings.db_pool_max_size,
                    command_timeout=settings.db_command_timeout,
                    init=_init_connection
                )
                logger.info("Database connection pool created")
            except Exception as e:
                logger.error(f"Failed to create database pool: {e}")
                raise
        return cls._pool

    @classmethod
    async def close_pool(cls):
        """Close database connection pool"""
        if cls._pool:
            await cls._pool.close()
            cls._pool = None
            logger.info("Database connection pool closed")

async def get_db_connection() -> asyncpg.Connection:
    """Get database connection from pool"""
    pool = await DatabaseConnection.get_pool()
    return await pool.acquire()

async def release_db_connection(connection: asyncpg.Connection):
    """Release database connection back to pool"""
    pool = await DatabaseConnection.get_pool()
    await pool.release(connection)

async def get_connection() -> AsyncIterator[asyncpg.Connection]:
    """Request-scoped connection dependency"""
    connection = await get_db_connection()
    try:
        yield connection
    finally:
        await release_db_connection(connection)
