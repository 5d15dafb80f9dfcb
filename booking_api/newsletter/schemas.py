# booking_api/newsletter/schemas.py
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum

class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )

class CampaignStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENDING = "sending"
    SENT = "sent"
    CANCELLED = "cancelled"
    FAILED = "failed"

class SubscriberSource(str, Enum):
    WEBSITE = "website"
    IMPORT = "import"
    MANUAL = "manual"
    API = "api"

class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    NEVER = "never"

class EmailFormat(str, Enum):
    HTML = "html"
    TEXT = "text"

class WinnerMetric(str, Enum):
    OPENS = "opens"
    CLICKS = "clicks"
    CONVERSIONS = "conversions"

class VariableType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    URL = "url"
    DATE = "date"
    NUMBER = "number"

class UnsubscribeReason(str, Enum):
    USER_REQUEST = "user_request"
    BOUNCE = "bounce"
    COMPLAINT = "complaint"
    ADMIN_ACTION = "admin_action"
    GDPR_REQUEST = "gdpr_request"

# --- Campaign ---------------------------------------------------------------

class CampaignContent(CamelModel):
    html: str
    text: Optional[str] = None

class CampaignSegmentation(CamelModel):
    tags: List[str] = []
    categories: List[str] = []
    # Campaign audiences can target daily/weekly/monthly readers only
    frequency: List[Frequency] = []
    exclude_tags: List[str] = []
    custom_filters: Optional[Dict[str, Any]] = None

class ABTestConfig(CamelModel):
    enabled: bool = False
    subject_variants: List[str] = []
    content_variants: List[str] = []
    test_percentage: float = Field(20, ge=0, le=100)
    winner_metric: WinnerMetric = WinnerMetric.OPENS

class CampaignAnalytics(CamelModel):
    total_recipients: int = 0
    total_sent: int = 0
    total_delivered: int = 0
    total_opened: int = 0
    total_clicked: int = 0
    total_bounced: int = 0
    total_unsubscribed: int = 0
    open_rate: float = 0
    click_rate: float = 0
    bounce_rate: float = 0
    unsubscribe_rate: float = 0
    last_updated: Optional[datetime] = None

class CampaignSettings(CamelModel):
    track_opens: bool = True
    track_clicks: bool = True
    allow_unsubscribe: bool = True
    reply_to_email: Optional[EmailStr] = None
    from_name: Optional[str] = None

class NewsletterCampaign(CamelModel):
    id: Optional[str] = None
    name: str
    subject: str
    content: CampaignContent
    company_id: str
    created_by: str
    status: CampaignStatus = CampaignStatus.DRAFT
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    segmentation: CampaignSegmentation = CampaignSegmentation()
    ab_test: ABTestConfig = ABTestConfig()
    analytics: CampaignAnalytics = CampaignAnalytics()
    settings: CampaignSettings = CampaignSettings()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# --- Subscriber -------------------------------------------------------------

class SubscriberPreferences(CamelModel):
    frequency: Frequency = Frequency.WEEKLY
    categories: List[str] = []
    format: EmailFormat = EmailFormat.HTML

class SubscriberMetadata(CamelModel):
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None

class EmailDeliveryStats(CamelModel):
    total_sent: int = 0
    total_delivered: int = 0
    total_opened: int = 0
    total_clicked: int = 0
    total_bounced: int = 0
    last_opened_at: Optional[datetime] = None
    last_clicked_at: Optional[datetime] = None

class NewsletterSubscriber(CamelModel):
    id: Optional[str] = None
    email: EmailStr
    name: Optional[str] = None
    company_id: Optional[str] = None
    is_active: bool = True
    subscribed_at: Optional[datetime] = None
    unsubscribed_at: Optional[datetime] = None
    source: SubscriberSource = SubscriberSource.WEBSITE
    tags: List[str] = []
    preferences: SubscriberPreferences = SubscriberPreferences()
    metadata: SubscriberMetadata = SubscriberMetadata()
    email_delivery_stats: EmailDeliveryStats = EmailDeliveryStats()
    unsubscribe_token: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# --- Template ---------------------------------------------------------------

class TemplateContent(CamelModel):
    html: str
    text: Optional[str] = None
    css: Optional[str] = None

class TemplateVariable(CamelModel):
    name: str = Field(..., min_length=1)
    type: VariableType
    required: bool = False
    default_value: Optional[str] = None
    description: Optional[str] = None

class NewsletterTemplate(CamelModel):
    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    company_id: Optional[str] = None
    is_global: bool = False
    category: str
    thumbnail: Optional[str] = None
    content: TemplateContent
    variables: List[TemplateVariable] = []
    created_by: str
    is_active: bool = True
    usage_count: int = 0
    last_used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# --- Unsubscription ---------------------------------------------------------

class Unsubscription(CamelModel):
    id: Optional[str] = None
    email: EmailStr
    subscriber_id: Optional[str] = None
    campaign_id: Optional[str] = None
    company_id: Optional[str] = None
    reason: UnsubscribeReason = UnsubscribeReason.USER_REQUEST
    user_reason: Optional[str] = None
    unsubscribed_at: Optional[datetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    feedback: Optional[str] = None
    can_resubscribe: bool = True
    resubscribed_at: Optional[datetime] = None
    resubscribe_token: Optional[str] = None
    created_at: Optional[datetime] = None

# --- Requests ---------------------------------------------------------------

class SubscribeRequest(CamelModel):
    email: EmailStr
    name: Optional[str] = None
    tags: Optional[List[str]] = None
    preferences: Optional[Dict[str, Any]] = None
    source: SubscriberSource = SubscriberSource.WEBSITE

class UnsubscribeRequest(CamelModel):
    token: Optional[str] = None
    email: Optional[EmailStr] = None
    reason: Optional[str] = None
    feedback: Optional[str] = None
    campaign_id: Optional[str] = None

class ResubscribeRequest(CamelModel):
    token: Optional[str] = None
    email: Optional[EmailStr] = None

class UpdatePreferencesRequest(CamelModel):
    name: Optional[str] = None
    preferences: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None

class ImportSubscriberRow(CamelModel):
    email: Optional[str] = None
    name: Optional[str] = None

class ImportSubscribersRequest(CamelModel):
    subscribers: List[ImportSubscriberRow]
    tags: List[str] = []
    skip_existing: bool = True

class CreateCampaignRequest(CamelModel):
    name: str
    subject: str
    content: Optional[CampaignContent] = None
    template_id: Optional[str] = None
    template_values: Dict[str, Any] = {}
    segmentation: Optional[CampaignSegmentation] = None
    scheduled_at: Optional[datetime] = None
    ab_test: Optional[ABTestConfig] = None
    settings: Optional[Dict[str, Any]] = None

class CampaignStatusRequest(CamelModel):
    status: CampaignStatus

class CampaignAnalyticsUpdate(CamelModel):
    """Count deltas reported by the mail provider"""
    total_recipients: int = Field(0, ge=0)
    total_sent: int = Field(0, ge=0)
    total_delivered: int = Field(0, ge=0)
    total_opened: int = Field(0, ge=0)
    total_clicked: int = Field(0, ge=0)
    total_bounced: int = Field(0, ge=0)
    total_unsubscribed: int = Field(0, ge=0)

class CreateTemplateRequest(CamelModel):
    name: str
    description: Optional[str] = None
    is_global: bool = False
    category: str
    thumbnail: Optional[str] = None
    content: TemplateContent
    variables: List[TemplateVariable] = []

class RenderTemplateRequest(CamelModel):
    values: Dict[str, Any] = {}
