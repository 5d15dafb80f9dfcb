# booking_api/models/newsletter.py
# Table and index declarations for the newsletter tables. Queries go through
# asyncpg in the repositories; these classes are the source for the DDL.
from sqlalchemy import Column, String, DateTime, Boolean, Text, Integer, Index, text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import declarative_base
from booking_api.config import settings

Base = declarative_base()

_uuid_pk = dict(primary_key=True, server_default=text("uuid_generate_v4()"))

def _subscriber_email_index(scope: str) -> Index:
    if scope == "company":
        return Index("uq_newsletter_subscribers_company_email", "company_id", "email", unique=True)
    return Index("uq_newsletter_subscribers_email", "email", unique=True)

class NewsletterCampaign(Base):
    __tablename__ = "newsletter_campaigns"

    id = Column(UUID(as_uuid=False), **_uuid_pk)
    name = Column(String(200), nullable=False)
    subject = Column(String(300), nullable=False)
    content = Column(JSONB, nullable=False)  # {html, text}
    company_id = Column(UUID(as_uuid=False), nullable=False)
    created_by = Column(UUID(as_uuid=False), nullable=False)
    status = Column(String(20), nullable=False, server_default="draft")
    scheduled_at = Column(DateTime(timezone=True))
    sent_at = Column(DateTime(timezone=True))
    segmentation = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    ab_test = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    analytics = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    settings = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        Index("idx_newsletter_campaigns_company", "company_id"),
        Index("idx_newsletter_campaigns_status", "status"),
        Index("idx_newsletter_campaigns_scheduled_at", "scheduled_at"),
        Index("idx_newsletter_campaigns_created_by", "created_by"),
    )

class NewsletterSubscriber(Base):
    __tablename__ = "newsletter_subscribers"

    id = Column(UUID(as_uuid=False), **_uuid_pk)
    email = Column(String(255), nullable=False)
    name = Column(String(100))
    company_id = Column(UUID(as_uuid=False))
    is_active = Column(Boolean, nullable=False, server_default=text("true"))
    subscribed_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    unsubscribed_at = Column(DateTime(timezone=True))
    source = Column(String(20), nullable=False, server_default="website")
    tags = Column(ARRAY(Text), nullable=False, server_default=text("'{}'"))
    preferences = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    metadata_ = Column("metadata", JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    email_delivery_stats = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    unsubscribe_token = Column(String(64), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        _subscriber_email_index(settings.subscriber_email_scope),
        Index("idx_newsletter_subscribers_email", "email"),
        Index("idx_newsletter_subscribers_company", "company_id"),
        Index("idx_newsletter_subscribers_is_active", "is_active"),
        Index("idx_newsletter_subscribers_tags", "tags", postgresql_using="gin"),
        Index("idx_newsletter_subscribers_token", "unsubscribe_token"),
    )

Index(
    "idx_newsletter_subscribers_frequency",
    NewsletterSubscriber.preferences["frequency"].astext,
)

class NewsletterTemplate(Base):
    __tablename__ = "newsletter_templates"

    id = Column(UUID(as_uuid=False), **_uuid_pk)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    company_id = Column(UUID(as_uuid=False))
    is_global = Column(Boolean, nullable=False, server_default=text("false"))
    category = Column(String(100), nullable=False)
    thumbnail = Column(Text)
    content = Column(JSONB, nullable=False)  # {html, text, css}
    variables = Column(JSONB, nullable=False, server_default=text("'[]'::jsonb"))
    created_by = Column(UUID(as_uuid=False), nullable=False)
    is_active = Column(Boolean, nullable=False, server_default=text("true"))
    usage_count = Column(Integer, nullable=False, server_default=text("0"))
    last_used_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        Index("idx_newsletter_templates_company", "company_id"),
        Index("idx_newsletter_templates_is_global", "is_global"),
        Index("idx_newsletter_templates_category", "category"),
        Index("idx_newsletter_templates_is_active", "is_active"),
        Index("idx_newsletter_templates_created_by", "created_by"),
    )

class Unsubscription(Base):
    __tablename__ = "newsletter_unsubscriptions"

    id = Column(UUID(as_uuid=False), **_uuid_pk)
    email = Column(String(255), nullable=False)
    subscriber_id = Column(UUID(as_uuid=False))
    campaign_id = Column(UUID(as_uuid=False))
    company_id = Column(UUID(as_uuid=False))
    reason = Column(String(20), nullable=False, server_default="user_request")
    user_reason = Column(Text)
    unsubscribed_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    ip_address = Column(String(64))
    user_agent = Column(Text)
    feedback = Column(Text)
    can_resubscribe = Column(Boolean, nullable=False, server_default=text("true"))
    resubscribed_at = Column(DateTime(timezone=True))
    resubscribe_token = Column(String(64), unique=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        Index("idx_newsletter_unsubscriptions_email", "email"),
        Index("idx_newsletter_unsubscriptions_subscriber", "subscriber_id"),
        Index("idx_newsletter_unsubscriptions_campaign", "campaign_id"),
        Index("idx_newsletter_unsubscriptions_company", "company_id"),
        Index("idx_newsletter_unsubscriptions_unsubscribed_at", "unsubscribed_at"),
        Index("idx_newsletter_unsubscriptions_token", "resubscribe_token"),
    )
