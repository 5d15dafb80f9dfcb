# booking_api/database/template_repository.py
import asyncpg
from typing import List, Optional
from booking_api.database.base import BaseRepository
from booking_api.newsletter.schemas import NewsletterTemplate
import logging

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, name, description, company_id, is_global, category, thumbnail, content,
    variables, created_by, is_active, usage_count, last_used_at, created_at, updated_at
"""

class TemplateRepository(BaseRepository):
    def _to_model(self, row: Optional[asyncpg.Record]) -> Optional[NewsletterTemplate]:
        record = self._record(row)
        if record is None:
            return None
        record["variables"] = record.get("variables") or []
        return NewsletterTemplate.model_validate(record)

    async def create(self, template: NewsletterTemplate) -> NewsletterTemplate:
        try:
            query = f"""
                INSERT INTO newsletter_templates (
                    name, description, company_id, is_global, category, thumbnail,
                    content, variables, created_by, is_active
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                RETURNING {_COLUMNS}
            """
            row = await self.conn.fetchrow(
                query,
                template.name,
                template.description,
                template.company_id,
                template.is_global,
                template.category,
                template.thumbnail,
                template.content.model_dump(mode="json", by_alias=True),
                [v.model_dump(mode="json", by_alias=True) for v in template.variables],
                template.created_by,
                template.is_active
            )
            logger.info(f"Created newsletter template '{template.name}' (global={template.is_global})")
            return self._to_model(row)

        except Exception as e:
            logger.error(f"Failed to create template '{template.name}': {e}")
            raise

    async def get(self, template_id: str) -> Optional[NewsletterTemplate]:
        query = f"SELECT {_COLUMNS} FROM newsletter_templates WHERE id = $1"
        return self._to_model(await self.conn.fetchrow(query, template_id))

    async def list_available(
        self, company_id: Optional[str], category: Optional[str] = None
    ) -> List[NewsletterTemplate]:
        """Active global templates plus the company's own"""
        params = [company_id, category]
        rows = await self.conn.fetch(f"""
            SELECT {_COLUMNS} FROM newsletter_templates
            WHERE is_active = true
              AND (is_global = true OR company_id = $1::uuid)
              AND ($2::text IS NULL OR category = $2)
            ORDER BY is_global, name
        """, *params)
        return [self._to_model(row) for row in rows]

    async def mark_used(self, template_id: str):
        await self.conn.execute("""
            UPDATE newsletter_templates
            SET usage_count = usage_count + 1,
                last_used_at = CURRENT_TIMESTAMP,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = $1
        """, template_id)
