# booking_api/database/__init__.py
from .connection import get_db_connection, release_db_connection, get_connection, DatabaseConnection
from .subscriber_repository import SubscriberRepository
from .campaign_repository import CampaignRepository
from .template_repository import TemplateRepository
from .unsubscription_repository import UnsubscriptionRepository

__all__ = [
    "get_db_connection",
    "release_db_connection",
    "get_connection",
    "DatabaseConnection",
    "SubscriberRepository",
    "CampaignRepository",
    "TemplateRepository",
    "UnsubscriptionRepository",
]
