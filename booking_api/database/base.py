# booking_api/database/base.py
import uuid
import asyncpg
from typing import Any, Dict, Optional

class BaseRepository:
    def __init__(self, connection: asyncpg.Connection):
        self.conn = connection

    @staticmethod
    def _record(row: Optional[asyncpg.Record]) -> Optional[Dict[str, Any]]:
        """Row to dict with UUIDs as strings"""
        if row is None:
            return None
        return {
            key: str(value) if isinstance(value, uuid.UUID) else value
            for key, value in dict(row).items()
        }
