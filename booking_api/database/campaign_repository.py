# booking_api/database/campaign_repository.py
import asyncpg
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from booking_api.database.base import BaseRepository
from booking_api.newsletter.analytics import apply_analytics_delta, recompute_analytics
from booking_api.newsletter.schemas import (
    CampaignAnalytics,
    CampaignAnalyticsUpdate,
    NewsletterCampaign,
)
from booking_api.utils.pagination import apply_pagination
import logging

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, name, subject, content, company_id, created_by, status, scheduled_at,
    sent_at, segmentation, ab_test, analytics, settings, created_at, updated_at
"""

def _json(model) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)

class CampaignRepository(BaseRepository):
    def _to_model(self, row: Optional[asyncpg.Record]) -> Optional[NewsletterCampaign]:
        record = self._record(row)
        if record is None:
            return None
        for key in ("segmentation", "ab_test", "analytics", "settings"):
            record[key] = record.get(key) or {}
        return NewsletterCampaign.model_validate(record)

    async def create(self, campaign: NewsletterCampaign) -> NewsletterCampaign:
        try:
            query = f"""
                INSERT INTO newsletter_campaigns (
                    name, subject, content, company_id, created_by, status,
                    scheduled_at, segmentation, ab_test, analytics, settings
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                RETURNING {_COLUMNS}
            """
            row = await self.conn.fetchrow(
                query,
                campaign.name,
                campaign.subject,
                _json(campaign.content),
                campaign.company_id,
                campaign.created_by,
                campaign.status,
                campaign.scheduled_at,
                _json(campaign.segmentation),
                _json(campaign.ab_test),
                _json(campaign.analytics),
                _json(campaign.settings)
            )
            logger.info(f"Created newsletter campaign '{campaign.name}' for company {campaign.company_id}")
            return self._to_model(row)

        except Exception as e:
            logger.error(f"Failed to create campaign '{campaign.name}': {e}")
            raise

    async def get(
        self, campaign_id: str, company_id: Optional[str] = None
    ) -> Optional[NewsletterCampaign]:
        """Fetch one campaign; a company id restricts it to that tenant"""
        if company_id:
            query = f"SELECT {_COLUMNS} FROM newsletter_campaigns WHERE id = $1 AND company_id = $2"
            row = await self.conn.fetchrow(query, campaign_id, company_id)
        else:
            query = f"SELECT {_COLUMNS} FROM newsletter_campaigns WHERE id = $1"
            row = await self.conn.fetchrow(query, campaign_id)
        return self._to_model(row)

    async def find_page(
        self,
        company_id: Optional[str],
        page: int,
        limit: int,
        status: Optional[str] = None
    ) -> Tuple[List[NewsletterCampaign], int]:
        conditions = []
        params: List[Any] = []

        if company_id:
            params.append(company_id)
            conditions.append(f"company_id = ${len(params)}")

        if status:
            params.append(status)
            conditions.append(f"status = ${len(params)}")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        total = await self.conn.fetchval(
            f"SELECT COUNT(*) FROM newsletter_campaigns {where}", *params
        )
        if (page - 1) * limit >= total:
            return [], total

        query, query_params = apply_pagination(
            f"SELECT {_COLUMNS} FROM newsletter_campaigns {where} ORDER BY created_at DESC, id",
            params, page, limit
        )
        rows = await self.conn.fetch(query, *query_params)
        return [self._to_model(row) for row in rows], total

    async def update_status(
        self,
        campaign_id: str,
        expected: str,
        status: str,
        sent_at: Optional[datetime] = None
    ) -> Optional[NewsletterCampaign]:
        """Compare-and-set the status; None means someone else moved it first"""
        query = f"""
            UPDATE newsletter_campaigns
            SET status = $3,
                sent_at = COALESCE($4, sent_at),
                updated_at = CURRENT_TIMESTAMP
            WHERE id = $1 AND status = $2
            RETURNING {_COLUMNS}
        """
        row = await self.conn.fetchrow(query, campaign_id, expected, status, sent_at)
        if row:
            logger.info(f"Campaign {campaign_id} moved from {expected} to {status}")
        return self._to_model(row)

    async def update_analytics(
        self, campaign_id: str, analytics: CampaignAnalytics
    ) -> Optional[NewsletterCampaign]:
        query = f"""
            UPDATE newsletter_campaigns
            SET analytics = $2, updated_at = CURRENT_TIMESTAMP
            WHERE id = $1
            RETURNING {_COLUMNS}
        """
        return self._to_model(await self.conn.fetchrow(query, campaign_id, _json(analytics)))

    async def add_analytics(
        self, campaign_id: str, delta: CampaignAnalyticsUpdate
    ) -> Optional[NewsletterCampaign]:
        """Add count deltas to the stored block under a row lock, then recompute rates"""
        async with self.conn.transaction():
            row = await self.conn.fetchrow(
                "SELECT analytics FROM newsletter_campaigns WHERE id = $1 FOR UPDATE",
                campaign_id
            )
            if row is None:
                return None

            current = CampaignAnalytics.model_validate(row["analytics"] or {})
            analytics = recompute_analytics(apply_analytics_delta(current, delta))
            return await self.update_analytics(campaign_id, analytics)

    async def stats(
        self, company_id: Optional[str], start: datetime, end: datetime
    ) -> Dict[str, Any]:
        params: List[Any] = [start, end]
        scope = ""
        if company_id:
            params.append(company_id)
            scope = "AND company_id = $3"

        row = await self.conn.fetchrow(f"""
            SELECT
                COUNT(*) AS total_campaigns,
                COUNT(*) FILTER (WHERE status = 'sent') AS sent_campaigns,
                COUNT(*) FILTER (WHERE status = 'scheduled') AS scheduled_campaigns,
                COUNT(*) FILTER (WHERE status = 'draft') AS draft_campaigns,
                COALESCE(SUM((analytics->>'totalSent')::int), 0) AS total_sent,
                COALESCE(SUM((analytics->>'totalOpened')::int), 0) AS total_opened,
                COALESCE(SUM((analytics->>'totalClicked')::int), 0) AS total_clicked,
                COALESCE(AVG((analytics->>'openRate')::float), 0) AS avg_open_rate,
                COALESCE(AVG((analytics->>'clickRate')::float), 0) AS avg_click_rate
            FROM newsletter_campaigns
            WHERE created_at BETWEEN $1 AND $2 {scope}
        """, *params)

        return {
            "totalCampaigns": row["total_campaigns"],
            "sentCampaigns": row["sent_campaigns"],
            "scheduledCampaigns": row["scheduled_campaigns"],
            "draftCampaigns": row["draft_campaigns"],
            "totalEmailsSent": row["total_sent"],
            "totalEmailsOpened": row["total_opened"],
            "totalEmailsClicked": row["total_clicked"],
            "avgOpenRate": float(row["avg_open_rate"]),
            "avgClickRate": float(row["avg_click_rate"]),
        }
