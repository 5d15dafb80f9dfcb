# booking_api/database/unsubscription_repository.py
import asyncpg
from datetime import datetime
from typing import Any, Dict, List, Optional
from booking_api.database.base import BaseRepository
from booking_api.newsletter.exceptions import DuplicateRecordError
from booking_api.newsletter.schemas import Unsubscription
import logging

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, email, subscriber_id, campaign_id, company_id, reason, user_reason,
    unsubscribed_at, ip_address, user_agent, feedback, can_resubscribe,
    resubscribed_at, resubscribe_token, created_at
"""

class UnsubscriptionRepository(BaseRepository):
    def _to_model(self, row: Optional[asyncpg.Record]) -> Optional[Unsubscription]:
        record = self._record(row)
        return Unsubscription.model_validate(record) if record else None

    async def create(self, unsubscription: Unsubscription) -> Unsubscription:
        """Record an unsubscribe event; any resubscribe token is set by the caller"""
        try:
            query = f"""
                INSERT INTO newsletter_unsubscriptions (
                    email, subscriber_id, campaign_id, company_id, reason, user_reason,
                    ip_address, user_agent, feedback, can_resubscribe, resubscribe_token
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                RETURNING {_COLUMNS}
            """
            row = await self.conn.fetchrow(
                query,
                unsubscription.email,
                unsubscription.subscriber_id,
                unsubscription.campaign_id,
                unsubscription.company_id,
                unsubscription.reason,
                unsubscription.user_reason,
                unsubscription.ip_address,
                unsubscription.user_agent,
                unsubscription.feedback,
                unsubscription.can_resubscribe,
                unsubscription.resubscribe_token
            )
            logger.info(f"Recorded unsubscription for {unsubscription.email} ({unsubscription.reason})")
            return self._to_model(row)

        except asyncpg.UniqueViolationError as e:
            logger.warning(f"Duplicate resubscribe token rejected for {unsubscription.email}: {e}")
            raise DuplicateRecordError("Resubscribe token already exists")
        except Exception as e:
            logger.error(f"Failed to record unsubscription for {unsubscription.email}: {e}")
            raise

    async def get_by_token(self, token: str) -> Optional[Unsubscription]:
        query = f"SELECT {_COLUMNS} FROM newsletter_unsubscriptions WHERE resubscribe_token = $1"
        return self._to_model(await self.conn.fetchrow(query, token))

    async def mark_resubscribed(self, unsubscription_id: str) -> Optional[Unsubscription]:
        query = f"""
            UPDATE newsletter_unsubscriptions
            SET resubscribed_at = CURRENT_TIMESTAMP
            WHERE id = $1
            RETURNING {_COLUMNS}
        """
        return self._to_model(await self.conn.fetchrow(query, unsubscription_id))

    async def reason_counts(
        self, company_id: Optional[str], start: datetime, end: datetime
    ) -> List[Dict[str, Any]]:
        params: List[Any] = [start, end]
        scope = ""
        if company_id:
            params.append(company_id)
            scope = "AND company_id = $3"

        rows = await self.conn.fetch(f"""
            SELECT reason, COUNT(*) AS count
            FROM newsletter_unsubscriptions
            WHERE unsubscribed_at BETWEEN $1 AND $2 {scope}
            GROUP BY reason
            ORDER BY count DESC
        """, *params)
        return [{"reason": row["reason"], "count": row["count"]} for row in rows]
