# tests/conftest.py
import os

# Required settings must exist before booking_api.config is imported
os.environ.setdefault("FROM_EMAIL", "newsletter@example.com")
os.environ.setdefault("SUPPORT_EMAIL", "support@example.com")
os.environ.setdefault("FRONTEND_URL", "http://localhost:3000")
os.environ.setdefault("BACKEND_URL", "http://backend.test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from jose import jwt
from starlette.testclient import TestClient

from booking_api.config import settings
from booking_api.main import app
from booking_api.newsletter.service import NewsletterService
from booking_api.routes.newsletter import get_newsletter_service
from tests.fakes import (
    FakeCampaignRepository,
    FakeEmailSender,
    FakeNotifier,
    FakeSubscriberRepository,
    FakeTemplateRepository,
    FakeUnsubscriptionRepository,
)

COMPANY_ID = "11111111-1111-4111-8111-111111111111"
OTHER_COMPANY_ID = "22222222-2222-4222-8222-222222222222"
USER_ID = "33333333-3333-4333-8333-333333333333"

def make_token(sub=USER_ID, company_id=COMPANY_ID, is_super_admin=False, role="company_admin"):
    claims = {"sub": sub, "email": "admin@example.com", "role": role, "isSuperAdmin": is_super_admin}
    if company_id:
        claims["companyId"] = company_id
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

def auth_headers(**claims):
    return {"Authorization": f"Bearer {make_token(**claims)}"}

@pytest.fixture
def subscribers():
    return FakeSubscriberRepository()

@pytest.fixture
def campaigns():
    return FakeCampaignRepository()

@pytest.fixture
def templates():
    return FakeTemplateRepository()

@pytest.fixture
def unsubscriptions():
    return FakeUnsubscriptionRepository()

@pytest.fixture
def email_sender():
    return FakeEmailSender()

@pytest.fixture
def notifier():
    return FakeNotifier()

@pytest.fixture
def service(subscribers, campaigns, templates, unsubscriptions, email_sender, notifier):
    return NewsletterService(
        subscribers=subscribers,
        campaigns=campaigns,
        templates=templates,
        unsubscriptions=unsubscriptions,
        email_sender=email_sender,
        notifier=notifier,
    )

@pytest.fixture
def client(service):
    """
    TestClient with the database-backed newsletter service replaced by the
    in-memory one. The lifespan is not run, so no pool is created.
    """
    app.dependency_overrides[get_newsletter_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def company_scope():
    """Switch subscriber uniqueness to per-company for one test"""
    previous = settings.subscriber_email_scope
    settings.subscriber_email_scope = "company"
    yield
    settings.subscriber_email_scope = previous
