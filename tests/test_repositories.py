import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from booking_api.database import (
    CampaignRepository,
    SubscriberRepository,
    UnsubscriptionRepository,
)
from booking_api.newsletter.exceptions import DuplicateRecordError
from booking_api.newsletter.schemas import (
    CampaignAnalyticsUpdate,
    NewsletterSubscriber,
    Unsubscription,
)

SUBSCRIBER_ID = uuid.UUID("44444444-4444-4444-8444-444444444444")

def _connection():
    conn = MagicMock()
    conn.fetchrow = AsyncMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchval = AsyncMock(return_value=0)
    conn.execute = AsyncMock()
    return conn

def _subscriber_row(**overrides):
    now = datetime.now(timezone.utc)
    row = {
        "id": SUBSCRIBER_ID,
        "email": "reader@example.com",
        "name": "Reader",
        "company_id": None,
        "is_active": True,
        "subscribed_at": now,
        "unsubscribed_at": None,
        "source": "website",
        "tags": ["events"],
        "preferences": {"frequency": "monthly"},
        "metadata": None,
        "email_delivery_stats": None,
        "unsubscribe_token": "a" * 64,
        "created_at": now,
        "updated_at": now,
    }
    row.update(overrides)
    return row

@pytest.mark.asyncio
async def test_rows_become_models_with_string_ids_and_json_defaults():
    conn = _connection()
    conn.fetchrow.return_value = _subscriber_row()

    subscriber = await SubscriberRepository(conn).get_by_token("a" * 64)

    assert subscriber.id == str(SUBSCRIBER_ID)
    assert subscriber.preferences.frequency == "monthly"
    assert subscriber.preferences.format == "html"
    assert subscriber.metadata.ip_address is None
    assert subscriber.email_delivery_stats.total_sent == 0

@pytest.mark.asyncio
async def test_missing_row_is_none():
    conn = _connection()
    conn.fetchrow.return_value = None

    assert await SubscriberRepository(conn).get_by_id(str(SUBSCRIBER_ID)) is None

@pytest.mark.asyncio
async def test_duplicate_subscriber_insert_is_translated():
    conn = _connection()
    conn.fetchrow.side_effect = asyncpg.UniqueViolationError("duplicate key value")

    with pytest.raises(DuplicateRecordError):
        await SubscriberRepository(conn).create(
            NewsletterSubscriber(email="reader@example.com", unsubscribe_token="a" * 64)
        )

@pytest.mark.asyncio
async def test_duplicate_resubscribe_token_is_translated():
    conn = _connection()
    conn.fetchrow.side_effect = asyncpg.UniqueViolationError("duplicate key value")

    with pytest.raises(DuplicateRecordError):
        await UnsubscriptionRepository(conn).create(
            Unsubscription(email="reader@example.com", resubscribe_token="b" * 64)
        )

@pytest.mark.asyncio
async def test_email_lookup_follows_uniqueness_scope(company_scope):
    conn = _connection()
    conn.fetchrow.return_value = None

    await SubscriberRepository(conn).get_by_email("reader@example.com", "company-1")

    query, *args = conn.fetchrow.call_args.args
    assert "IS NOT DISTINCT FROM $2" in query
    assert args == ["reader@example.com", "company-1"]

@pytest.mark.asyncio
async def test_email_lookup_is_global_by_default():
    conn = _connection()
    conn.fetchrow.return_value = None

    await SubscriberRepository(conn).get_by_email("reader@example.com", "company-1")

    query, *args = conn.fetchrow.call_args.args
    assert "company_id" not in query.split("WHERE")[1]
    assert args == ["reader@example.com"]

@pytest.mark.asyncio
async def test_subscriber_page_query_uses_filters_and_limit_offset():
    conn = _connection()
    conn.fetchval.return_value = 42
    conn.fetch.return_value = [_subscriber_row()]

    items, total = await SubscriberRepository(conn).find_page(
        "company-1", 3, 10, search="read", tags=["events"], is_active=True,
        sort_by="email", sort_order="asc"
    )

    assert total == 42
    assert items[0].email == "reader@example.com"

    query, *params = conn.fetch.call_args.args
    assert "ORDER BY email ASC, id LIMIT $5 OFFSET $6" in query
    assert params == ["company-1", "%read%", ["events"], True, 10, 20]

    count_query, *count_params = conn.fetchval.call_args.args
    assert "LIMIT" not in count_query
    assert count_params == ["company-1", "%read%", ["events"], True]

@pytest.mark.asyncio
async def test_increment_sent_skips_empty_batches():
    conn = _connection()

    await SubscriberRepository(conn).increment_sent([])
    conn.execute.assert_not_called()

    await SubscriberRepository(conn).increment_sent(["x"])
    conn.execute.assert_awaited_once()

@pytest.mark.asyncio
async def test_analytics_deltas_are_added_to_the_locked_row():
    conn = _connection()
    conn.fetchrow.side_effect = [
        {"analytics": {"totalSent": 4, "totalOpened": 1, "openRate": 25}},
        None,
    ]

    await CampaignRepository(conn).add_analytics(
        "c-1", CampaignAnalyticsUpdate(total_sent=1, total_opened=2)
    )

    conn.transaction.assert_called_once()
    lock_query = conn.fetchrow.call_args_list[0].args[0]
    assert "FOR UPDATE" in lock_query

    _, campaign_id, written = conn.fetchrow.call_args_list[1].args
    assert campaign_id == "c-1"
    assert written["totalSent"] == 5
    assert written["totalOpened"] == 3
    assert written["openRate"] == 60

@pytest.mark.asyncio
async def test_analytics_for_missing_campaign_is_none():
    conn = _connection()
    conn.fetchrow.return_value = None

    result = await CampaignRepository(conn).add_analytics("c-1", CampaignAnalyticsUpdate())

    assert result is None
    assert conn.fetchrow.await_count == 1

@pytest.mark.asyncio
async def test_status_compare_and_set_returns_none_when_row_moved():
    conn = _connection()
    conn.fetchrow.return_value = None

    result = await CampaignRepository(conn).update_status("c-1", "draft", "scheduled")

    assert result is None
    query, *args = conn.fetchrow.call_args.args
    assert "WHERE id = $1 AND status = $2" in query
    assert args == ["c-1", "draft", "scheduled", None]

@pytest.mark.asyncio
@pytest.mark.parametrize("repository, page", [
    (SubscriberRepository, 10 ** 18),
    (CampaignRepository, 10 ** 18),
    (SubscriberRepository, 2),
])
async def test_page_past_the_end_skips_the_row_query(repository, page):
    conn = _connection()
    conn.fetchval.return_value = 10

    items, total = await repository(conn).find_page(None, page, 10)

    assert items == []
    assert total == 10
    conn.fetch.assert_not_called()
