# booking_api/database/subscriber_repository.py
import asyncpg
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from booking_api.config import settings
from booking_api.database.base import BaseRepository
from booking_api.newsletter.exceptions import DuplicateRecordError
from booking_api.newsletter.schemas import NewsletterSubscriber
from booking_api.utils.pagination import apply_pagination
import logging

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, email, name, company_id, is_active, subscribed_at, unsubscribed_at,
    source, tags, preferences, metadata, email_delivery_stats,
    unsubscribe_token, created_at, updated_at
"""

SORT_COLUMNS = {
    "subscribedAt": "subscribed_at",
    "createdAt": "created_at",
    "email": "email",
    "name": "name",
}

class SubscriberRepository(BaseRepository):
    def _to_model(self, row: Optional[asyncpg.Record]) -> Optional[NewsletterSubscriber]:
        record = self._record(row)
        if record is None:
            return None
        record["metadata"] = record.get("metadata") or {}
        record["preferences"] = record.get("preferences") or {}
        record["email_delivery_stats"] = record.get("email_delivery_stats") or {}
        return NewsletterSubscriber.model_validate(record)

    async def create(self, subscriber: NewsletterSubscriber) -> NewsletterSubscriber:
        """Insert a subscriber; the token must already be set"""
        try:
            query = f"""
                INSERT INTO newsletter_subscribers (
                    email, name, company_id, is_active, source, tags,
                    preferences, metadata, email_delivery_stats, unsubscribe_token
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                RETURNING {_COLUMNS}
            """
            row = await self.conn.fetchrow(
                query,
                subscriber.email,
                subscriber.name,
                subscriber.company_id,
                subscriber.is_active,
                subscriber.source,
                subscriber.tags,
                subscriber.preferences.model_dump(mode="json", by_alias=True),
                subscriber.metadata.model_dump(mode="json", by_alias=True),
                subscriber.email_delivery_stats.model_dump(mode="json", by_alias=True),
                subscriber.unsubscribe_token
            )
            logger.info(f"Created newsletter subscriber: {subscriber.email}")
            return self._to_model(row)

        except asyncpg.UniqueViolationError as e:
            logger.warning(f"Duplicate subscriber rejected for {subscriber.email}: {e}")
            raise DuplicateRecordError("Subscriber email or token already exists")
        except Exception as e:
            logger.error(f"Failed to create subscriber {subscriber.email}: {e}")
            raise

    async def get_by_email(
        self, email: str, company_id: Optional[str] = None
    ) -> Optional[NewsletterSubscriber]:
        """Look up by email, scoped to the company when emails are unique per company"""
        if settings.subscriber_email_scope == "company":
            query = f"""
                SELECT {_COLUMNS} FROM newsletter_subscribers
                WHERE email = $1 AND company_id IS NOT DISTINCT FROM $2
            """
            row = await self.conn.fetchrow(query, email, company_id)
        else:
            query = f"SELECT {_COLUMNS} FROM newsletter_subscribers WHERE email = $1"
            row = await self.conn.fetchrow(query, email)
        return self._to_model(row)

    async def get_by_token(self, token: str) -> Optional[NewsletterSubscriber]:
        query = f"SELECT {_COLUMNS} FROM newsletter_subscribers WHERE unsubscribe_token = $1"
        return self._to_model(await self.conn.fetchrow(query, token))

    async def get_by_id(self, subscriber_id: str) -> Optional[NewsletterSubscriber]:
        query = f"SELECT {_COLUMNS} FROM newsletter_subscribers WHERE id = $1"
        return self._to_model(await self.conn.fetchrow(query, subscriber_id))

    async def update(self, subscriber: NewsletterSubscriber) -> NewsletterSubscriber:
        """Persist the mutable fields; the unsubscribe token is never rewritten"""
        try:
            query = f"""
                UPDATE newsletter_subscribers
                SET name = $2, is_active = $3, subscribed_at = $4, unsubscribed_at = $5,
                    tags = $6, preferences = $7, updated_at = CURRENT_TIMESTAMP
                WHERE id = $1
                RETURNING {_COLUMNS}
            """
            row = await self.conn.fetchrow(
                query,
                subscriber.id,
                subscriber.name,
                subscriber.is_active,
                subscriber.subscribed_at,
                subscriber.unsubscribed_at,
                subscriber.tags,
                subscriber.preferences.model_dump(mode="json", by_alias=True)
            )
            return self._to_model(row)

        except Exception as e:
            logger.error(f"Failed to update subscriber {subscriber.id}: {e}")
            raise

    async def find_page(
        self,
        company_id: Optional[str],
        page: int,
        limit: int,
        search: Optional[str] = None,
        tags: Optional[List[str]] = None,
        is_active: Optional[bool] = None,
        frequency: Optional[str] = None,
        sort_by: str = "subscribedAt",
        sort_order: str = "desc"
    ) -> Tuple[List[NewsletterSubscriber], int]:
        conditions = []
        params: List[Any] = []

        if company_id:
            params.append(company_id)
            conditions.append(f"company_id = ${len(params)}")

        if search:
            params.append(f"%{search}%")
            conditions.append(f"(email ILIKE ${len(params)} OR name ILIKE ${len(params)})")

        if tags:
            params.append(tags)
            conditions.append(f"tags && ${len(params)}::text[]")

        if is_active is not None:
            params.append(is_active)
            conditions.append(f"is_active = ${len(params)}")

        if frequency:
            params.append(frequency)
            conditions.append(f"preferences->>'frequency' = ${len(params)}")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        column = SORT_COLUMNS.get(sort_by, "subscribed_at")
        direction = "ASC" if sort_order == "asc" else "DESC"

        try:
            total = await self.conn.fetchval(
                f"SELECT COUNT(*) FROM newsletter_subscribers {where}", *params
            )
            # Pages past the end never reach the OFFSET
            if (page - 1) * limit >= total:
                return [], total

            query, query_params = apply_pagination(
                f"SELECT {_COLUMNS} FROM newsletter_subscribers {where} "
                f"ORDER BY {column} {direction}, id",
                params, page, limit
            )
            rows = await self.conn.fetch(query, *query_params)
            return [self._to_model(row) for row in rows], total

        except Exception as e:
            logger.error(f"Failed to list subscribers: {e}")
            raise

    async def list_active(self, company_id: Optional[str]) -> List[NewsletterSubscriber]:
        """Active subscribers a campaign of this company may reach"""
        if company_id:
            query = f"""
                SELECT {_COLUMNS} FROM newsletter_subscribers
                WHERE is_active = true AND company_id = $1
                ORDER BY subscribed_at
            """
            rows = await self.conn.fetch(query, company_id)
        else:
            query = f"""
                SELECT {_COLUMNS} FROM newsletter_subscribers
                WHERE is_active = true ORDER BY subscribed_at
            """
            rows = await self.conn.fetch(query)
        return [self._to_model(row) for row in rows]

    async def increment_sent(self, subscriber_ids: List[str]):
        if not subscriber_ids:
            return
        await self.conn.execute("""
            UPDATE newsletter_subscribers
            SET email_delivery_stats = jsonb_set(
                    email_delivery_stats, '{totalSent}',
                    to_jsonb(COALESCE((email_delivery_stats->>'totalSent')::int, 0) + 1)
                ),
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ANY($1::uuid[])
        """, subscriber_ids)

    async def stats(
        self, company_id: Optional[str], start: datetime, end: datetime
    ) -> Dict[str, int]:
        params: List[Any] = [start, end]
        scope = ""
        if company_id:
            params.append(company_id)
            scope = "AND company_id = $3"

        row = await self.conn.fetchrow(f"""
            SELECT
                COUNT(*) AS total_subscribers,
                COUNT(*) FILTER (WHERE is_active) AS active_subscribers,
                COUNT(*) FILTER (WHERE NOT is_active) AS inactive_subscribers
            FROM newsletter_subscribers
            WHERE created_at BETWEEN $1 AND $2 {scope}
        """, *params)

        return {
            "totalSubscribers": row["total_subscribers"],
            "activeSubscribers": row["active_subscribers"],
            "inactiveSubscribers": row["inactive_subscribers"],
        }

    async def growth_trends(
        self, company_id: Optional[str], start: datetime, end: datetime
    ) -> List[Dict[str, Any]]:
        params: List[Any] = [start, end]
        scope = ""
        if company_id:
            params.append(company_id)
            scope = "AND company_id = $3"

        rows = await self.conn.fetch(f"""
            SELECT to_char(subscribed_at, 'YYYY-MM-DD') AS day, COUNT(*) AS subscriptions
            FROM newsletter_subscribers
            WHERE created_at BETWEEN $1 AND $2 {scope}
            GROUP BY day
            ORDER BY day
        """, *params)

        return [{"date": row["day"], "subscriptions": row["subscriptions"]} for row in rows]
