# booking_api/routes/newsletter.py - newsletter subscription, campaign and template endpoints
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from typing import Dict, Optional
from datetime import datetime
import logging
import uuid

from booking_api.auth.dependencies import require_company_access
from booking_api.auth.models import TokenData
from booking_api.database import (
    CampaignRepository,
    SubscriberRepository,
    TemplateRepository,
    UnsubscriptionRepository,
    get_connection,
)
from booking_api.newsletter.exceptions import NewsletterError, NotFoundError, TemplateRenderError
from booking_api.newsletter.schemas import (
    CampaignAnalyticsUpdate,
    CampaignStatusRequest,
    CreateCampaignRequest,
    CreateTemplateRequest,
    ImportSubscribersRequest,
    RenderTemplateRequest,
    ResubscribeRequest,
    SubscribeRequest,
    SubscriberMetadata,
    UnsubscribeRequest,
    UpdatePreferencesRequest,
)
from booking_api.newsletter.service import NewsletterService
from booking_api.realtime.manager import ConnectionManager, get_connection_manager
from booking_api.services.email_service import email_service
from booking_api.utils.pagination import pagination_params
from booking_api.utils.responses import paginated_response, success_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/newsletter", tags=["newsletter"])

async def get_newsletter_service(
    connection=Depends(get_connection),
    connections: ConnectionManager = Depends(get_connection_manager)
) -> NewsletterService:
    """Service bound to the request's pooled connection"""
    return NewsletterService(
        subscribers=SubscriberRepository(connection),
        campaigns=CampaignRepository(connection),
        templates=TemplateRepository(connection),
        unsubscriptions=UnsubscriptionRepository(connection),
        email_sender=email_service,
        notifier=connections
    )

def as_http_exception(error: NewsletterError) -> HTTPException:
    if isinstance(error, TemplateRenderError):
        return HTTPException(
            status_code=error.status_code,
            detail={"message": error.message, "errors": error.errors}
        )
    return HTTPException(status_code=error.status_code, detail=error.message)

def require_uuid(value: str, label: str) -> str:
    """Malformed ids can never match a row, so they are reported as missing"""
    try:
        uuid.UUID(value)
    except ValueError:
        raise NotFoundError(f"{label} not found")
    return value

def internal_error(action: str, error: Exception) -> HTTPException:
    logger.error(f"{action} failed: {error}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}"
    )

# --- Public ------------------------------------------------------------------

@router.post("/subscribe")
async def subscribe_newsletter(
    request: SubscribeRequest,
    req: Request,
    background_tasks: BackgroundTasks,
    company: Optional[str] = Query(None),
    service: NewsletterService = Depends(get_newsletter_service)
):
    """Subscribe to the newsletter; a returning email is reactivated"""
    try:
        if company:
            require_uuid(company, "Company")

        metadata = SubscriberMetadata(
            ip_address=req.client.host if req.client else None,
            user_agent=req.headers.get("user-agent"),
            referrer=req.headers.get("referer"),
            utm_source=req.query_params.get("utm_source"),
            utm_medium=req.query_params.get("utm_medium"),
            utm_campaign=req.query_params.get("utm_campaign")
        )

        subscriber, reactivated = await service.subscribe(
            email=request.email,
            name=request.name,
            tags=request.tags,
            preferences=request.preferences,
            source=request.source,
            company_id=company,
            metadata=metadata
        )

        if reactivated:
            return success_response("Successfully resubscribed to newsletter", {
                "subscriber": subscriber,
                "token": subscriber.unsubscribe_token
            })

        # Welcome email goes out after the response (non-blocking)
        background_tasks.add_task(service.send_welcome_email, subscriber)

        return success_response("Successfully subscribed to newsletter", {
            "subscriber": {
                "email": subscriber.email,
                "name": subscriber.name,
                "subscribedAt": subscriber.subscribed_at
            },
            "token": subscriber.unsubscribe_token
        }, status.HTTP_201_CREATED)

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("subscribe to newsletter", e)

@router.post("/unsubscribe")
async def unsubscribe_newsletter(
    request: UnsubscribeRequest,
    req: Request,
    company: Optional[str] = Query(None),
    service: NewsletterService = Depends(get_newsletter_service)
):
    try:
        if request.campaign_id:
            require_uuid(request.campaign_id, "Campaign")

        result = await service.unsubscribe(
            token=request.token,
            email=request.email,
            reason=request.reason,
            feedback=request.feedback,
            campaign_id=request.campaign_id,
            company_id=company,
            ip_address=req.client.host if req.client else None,
            user_agent=req.headers.get("user-agent")
        )
        return success_response("Successfully unsubscribed from newsletter", result)

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("unsubscribe from newsletter", e)

@router.post("/resubscribe")
async def resubscribe_newsletter(
    request: ResubscribeRequest,
    service: NewsletterService = Depends(get_newsletter_service)
):
    try:
        result = await service.resubscribe(request.token, request.email)
        return success_response("Successfully resubscribed to newsletter", result)

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("resubscribe to newsletter", e)

@router.get("/preferences/{token}")
async def get_preferences(
    token: str,
    service: NewsletterService = Depends(get_newsletter_service)
):
    try:
        return success_response(
            "Subscriber preferences retrieved", await service.get_preferences(token)
        )
    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("get subscriber preferences", e)

@router.put("/preferences/{token}")
async def update_preferences(
    token: str,
    request: UpdatePreferencesRequest,
    service: NewsletterService = Depends(get_newsletter_service)
):
    try:
        result = await service.update_preferences(
            token,
            name=request.name,
            preferences=request.preferences,
            tags=request.tags
        )
        return success_response("Subscriber preferences updated", result)

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("update subscriber preferences", e)

# --- Subscribers (admin) -----------------------------------------------------

@router.get("/subscribers")
async def list_subscribers(
    search: Optional[str] = Query(None),
    tags: Optional[str] = Query(None, description="Comma separated"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    frequency: Optional[str] = Query(None),
    sort_by: str = Query("subscribedAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    page: Dict[str, int] = Depends(pagination_params(default_limit=20)),
    user: TokenData = Depends(require_company_access),
    service: NewsletterService = Depends(get_newsletter_service)
):
    """Admin endpoint: the caller's subscribers, or everyone's for super admins"""
    try:
        tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else None

        items, total = await service.list_subscribers(
            user.company_scope,
            page["page"],
            page["limit"],
            search=search,
            tags=tag_list,
            is_active=is_active,
            frequency=frequency,
            sort_by=sort_by,
            sort_order=sort_order
        )
        return paginated_response(
            "Subscribers retrieved successfully", items, total, page["page"], page["limit"]
        )

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("get subscribers", e)

@router.post("/subscribers/import")
async def import_subscribers(
    request: ImportSubscribersRequest,
    user: TokenData = Depends(require_company_access),
    service: NewsletterService = Depends(get_newsletter_service)
):
    try:
        results = await service.import_subscribers(user.company_id, request)
        return success_response("Subscriber import completed", results)

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("import subscribers", e)

# --- Campaigns ---------------------------------------------------------------

@router.get("/campaigns")
async def list_campaigns(
    campaign_status: Optional[str] = Query(None, alias="status"),
    page: Dict[str, int] = Depends(pagination_params()),
    user: TokenData = Depends(require_company_access),
    service: NewsletterService = Depends(get_newsletter_service)
):
    try:
        items, total = await service.list_campaigns(
            user.company_scope, page["page"], page["limit"], status=campaign_status
        )
        return paginated_response(
            "Campaigns retrieved successfully", items, total, page["page"], page["limit"]
        )

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("get newsletter campaigns", e)

@router.post("/campaigns")
async def create_campaign(
    request: CreateCampaignRequest,
    user: TokenData = Depends(require_company_access),
    service: NewsletterService = Depends(get_newsletter_service)
):
    try:
        if request.template_id:
            require_uuid(request.template_id, "Template")

        campaign = await service.create_campaign(user.company_id, user.sub, request)
        return success_response(
            "Newsletter campaign created successfully", campaign, status.HTTP_201_CREATED
        )

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("create newsletter campaign", e)

@router.get("/campaigns/{campaign_id}")
async def get_campaign(
    campaign_id: str,
    user: TokenData = Depends(require_company_access),
    service: NewsletterService = Depends(get_newsletter_service)
):
    try:
        require_uuid(campaign_id, "Campaign")
        campaign = await service.get_campaign(campaign_id, user.company_scope)
        return success_response("Campaign retrieved successfully", campaign)

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("get newsletter campaign", e)

@router.post("/campaigns/{campaign_id}/status")
async def change_campaign_status(
    campaign_id: str,
    request: CampaignStatusRequest,
    user: TokenData = Depends(require_company_access),
    service: NewsletterService = Depends(get_newsletter_service)
):
    try:
        require_uuid(campaign_id, "Campaign")
        campaign = await service.change_campaign_status(
            campaign_id, user.company_scope, request.status
        )
        return success_response("Campaign status updated", campaign)

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("update campaign status", e)

@router.post("/campaigns/{campaign_id}/analytics")
async def record_campaign_analytics(
    campaign_id: str,
    request: CampaignAnalyticsUpdate,
    user: TokenData = Depends(require_company_access),
    service: NewsletterService = Depends(get_newsletter_service)
):
    """Add delivery/open/click counts reported by the mail provider"""
    try:
        require_uuid(campaign_id, "Campaign")
        campaign = await service.record_campaign_analytics(
            campaign_id, user.company_scope, request
        )
        return success_response("Campaign analytics updated", campaign.analytics)

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("update campaign analytics", e)

@router.post("/campaigns/{campaign_id}/send")
async def send_campaign(
    campaign_id: str,
    user: TokenData = Depends(require_company_access),
    service: NewsletterService = Depends(get_newsletter_service)
):
    try:
        require_uuid(campaign_id, "Campaign")
        result = await service.send_campaign(campaign_id, user.company_scope)
        return success_response("Campaign dispatched", result)

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("send newsletter campaign", e)

# --- Templates ---------------------------------------------------------------

@router.get("/templates")
async def list_templates(
    category: Optional[str] = Query(None),
    user: TokenData = Depends(require_company_access),
    service: NewsletterService = Depends(get_newsletter_service)
):
    try:
        templates = await service.list_templates(user.company_id, category)
        return success_response("Templates retrieved successfully", templates)

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("get newsletter templates", e)

@router.post("/templates")
async def create_template(
    request: CreateTemplateRequest,
    user: TokenData = Depends(require_company_access),
    service: NewsletterService = Depends(get_newsletter_service)
):
    try:
        template = await service.create_template(
            user.company_id, user.sub, user.is_super_admin, request
        )
        return success_response(
            "Newsletter template created successfully", template, status.HTTP_201_CREATED
        )

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("create newsletter template", e)

@router.post("/templates/{template_id}/render")
async def render_template(
    template_id: str,
    request: RenderTemplateRequest,
    user: TokenData = Depends(require_company_access),
    service: NewsletterService = Depends(get_newsletter_service)
):
    try:
        require_uuid(template_id, "Template")
        rendered = await service.render_template_by_id(
            template_id, user.company_id, request.values, user.is_super_admin
        )
        return success_response("Template rendered successfully", rendered)

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("render newsletter template", e)

# --- Analytics ---------------------------------------------------------------

@router.get("/analytics")
async def get_analytics(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    user: TokenData = Depends(require_company_access),
    service: NewsletterService = Depends(get_newsletter_service)
):
    """Subscriber, campaign and unsubscription figures for a period (default: last 30 days)"""
    try:
        result = await service.get_analytics(user.company_scope, start_date, end_date)
        return success_response("Newsletter analytics retrieved successfully", result)

    except NewsletterError as e:
        raise as_http_exception(e)
    except Exception as e:
        raise internal_error("get newsletter analytics", e)
