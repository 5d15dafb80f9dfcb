# booking_api/newsletter/service.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from booking_api.config import settings
from booking_api.database.subscriber_repository import SORT_COLUMNS
from booking_api.newsletter.exceptions import (
    ConflictError,
    ForbiddenError,
    NewsletterError,
    NotFoundError,
)
from booking_api.newsletter.lifecycle import validate_transition
from booking_api.newsletter.schemas import (
    CampaignAnalyticsUpdate,
    CampaignContent,
    CampaignSettings,
    CampaignStatus,
    CreateCampaignRequest,
    CreateTemplateRequest,
    ImportSubscribersRequest,
    NewsletterCampaign,
    NewsletterSubscriber,
    NewsletterTemplate,
    SubscriberMetadata,
    SubscriberPreferences,
    SubscriberSource,
    Unsubscription,
    UnsubscribeReason,
)
from booking_api.newsletter.segmentation import matches_segmentation
from booking_api.newsletter.templates import render_template, substitute
from booking_api.newsletter.tokens import ensure_resubscribe_token, ensure_unsubscribe_token
from booking_api.utils.validation import normalize_email, sanitize_input, validate_email

logger = logging.getLogger(__name__)

# Statuses an operator may set directly; sending/sent/failed belong to dispatch
MANUAL_STATUSES = {CampaignStatus.DRAFT, CampaignStatus.SCHEDULED, CampaignStatus.CANCELLED}

ANALYTICS_WINDOW = timedelta(days=30)

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

def _merge_preferences(
    current: SubscriberPreferences, changes: Optional[Dict[str, Any]]
) -> SubscriberPreferences:
    if not changes:
        return current
    try:
        return SubscriberPreferences.model_validate({
            **current.model_dump(by_alias=True),
            **changes,
        })
    except ValidationError as e:
        raise NewsletterError(f"Invalid preferences: {e.errors()[0]['msg']}")

def _reason_fields(reason: Optional[str]) -> Tuple[str, Optional[str]]:
    """A known reason code is stored as is; free text is kept as the user's reason"""
    if not reason:
        return UnsubscribeReason.USER_REQUEST.value, None
    try:
        return UnsubscribeReason(reason).value, None
    except ValueError:
        return UnsubscribeReason.USER_REQUEST.value, sanitize_input(reason, max_length=500)

class NewsletterService:
    """Newsletter use-cases over the four repositories"""

    def __init__(
        self,
        subscribers,
        campaigns,
        templates,
        unsubscriptions,
        email_sender=None,
        notifier=None
    ):
        self.subscribers = subscribers
        self.campaigns = campaigns
        self.templates = templates
        self.unsubscriptions = unsubscriptions
        self.email_sender = email_sender
        self.notifier = notifier

    # --- Public subscription flow ------------------------------------------

    async def subscribe(
        self,
        email: Optional[str],
        name: Optional[str] = None,
        tags: Optional[List[str]] = None,
        preferences: Optional[Dict[str, Any]] = None,
        source: str = SubscriberSource.WEBSITE.value,
        company_id: Optional[str] = None,
        metadata: Optional[SubscriberMetadata] = None
    ) -> Tuple[NewsletterSubscriber, bool]:
        """Subscribe an email; returns the subscriber and whether it was reactivated"""
        email = normalize_email(email)
        if not email:
            raise NewsletterError("Email is required")

        name = sanitize_input(name)
        existing = await self.subscribers.get_by_email(email, company_id)

        if existing:
            if existing.is_active:
                logger.info(f"User already subscribed: {email}")
                raise ConflictError("Email is already subscribed")

            updates: Dict[str, Any] = {
                "is_active": True,
                "subscribed_at": _utcnow(),
                "unsubscribed_at": None,
                "preferences": _merge_preferences(existing.preferences, preferences),
            }
            if name:
                updates["name"] = name
            if tags:
                updates["tags"] = tags

            subscriber = await self.subscribers.update(existing.model_copy(update=updates))
            logger.info(f"Reactivated subscription: {email}")
            return subscriber, True

        subscriber = ensure_unsubscribe_token(NewsletterSubscriber(
            email=email,
            name=name,
            company_id=company_id,
            tags=tags or [],
            preferences=_merge_preferences(SubscriberPreferences(), preferences),
            source=source,
            metadata=metadata or SubscriberMetadata(),
        ))
        subscriber = await self.subscribers.create(subscriber)

        logger.info(f"Newsletter subscription created: {email} from {source}")
        return subscriber, False

    async def send_welcome_email(self, subscriber: NewsletterSubscriber):
        """Background task; delivery problems are logged, never raised"""
        if not self.email_sender:
            return
        try:
            await self.email_sender.send_welcome_email(
                email=subscriber.email,
                name=subscriber.name,
                unsubscribe_token=subscriber.unsubscribe_token
            )
        except Exception as e:
            logger.error(f"Failed to send welcome email to {subscriber.email}: {e}")

    async def unsubscribe(
        self,
        token: Optional[str] = None,
        email: Optional[str] = None,
        reason: Optional[str] = None,
        feedback: Optional[str] = None,
        campaign_id: Optional[str] = None,
        company_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> Dict[str, Any]:
        if not token and not email:
            raise NewsletterError("Unsubscribe token or email is required")

        subscriber = None
        if token:
            subscriber = await self.subscribers.get_by_token(token)
        elif email:
            subscriber = await self.subscribers.get_by_email(normalize_email(email), company_id)

        if not subscriber:
            raise NotFoundError("Subscriber not found")

        if not subscriber.is_active:
            raise ConflictError("Email is already unsubscribed")

        subscriber = await self.subscribers.update(subscriber.model_copy(update={
            "is_active": False,
            "unsubscribed_at": _utcnow(),
        }))

        reason_code, user_reason = _reason_fields(reason)
        unsubscription = ensure_resubscribe_token(Unsubscription(
            email=subscriber.email,
            subscriber_id=subscriber.id,
            campaign_id=campaign_id,
            company_id=subscriber.company_id,
            reason=reason_code,
            user_reason=user_reason,
            feedback=sanitize_input(feedback, max_length=1000),
            ip_address=ip_address,
            user_agent=user_agent,
        ))
        unsubscription = await self.unsubscriptions.create(unsubscription)

        logger.info(f"Newsletter unsubscription: {subscriber.email} ({reason_code})")

        return {
            "email": subscriber.email,
            "unsubscribedAt": subscriber.unsubscribed_at,
            "resubscribeToken": unsubscription.resubscribe_token,
        }

    async def resubscribe(self, token: Optional[str], email: Optional[str] = None) -> Dict[str, Any]:
        if not token:
            raise NewsletterError("Resubscribe token is required")

        unsubscription = await self.unsubscriptions.get_by_token(token)
        if not unsubscription:
            raise NotFoundError("Invalid resubscribe token")

        # The token alone is enough; a supplied email must belong to it
        if email and normalize_email(email) != unsubscription.email:
            logger.warning(f"Resubscribe token {token[:8]}... presented with a different email")
            raise NotFoundError("Invalid resubscribe token")

        if not unsubscription.can_resubscribe:
            raise ForbiddenError("Resubscription not allowed for this email")

        # Each token reactivates once
        if unsubscription.resubscribed_at is not None:
            raise ConflictError("Resubscribe token has already been used")

        subscriber = None
        if unsubscription.subscriber_id:
            subscriber = await self.subscribers.get_by_id(unsubscription.subscriber_id)
        if not subscriber:
            subscriber = await self.subscribers.get_by_email(
                unsubscription.email, unsubscription.company_id
            )
        if not subscriber:
            raise NotFoundError("Subscriber not found")

        now = _utcnow()
        subscriber = await self.subscribers.update(subscriber.model_copy(update={
            "is_active": True,
            "subscribed_at": now,
            "unsubscribed_at": None,
        }))
        await self.unsubscriptions.mark_resubscribed(unsubscription.id)

        logger.info(f"Resubscribed: {subscriber.email}")
        return {"email": subscriber.email, "resubscribedAt": now}

    async def get_preferences(self, token: str) -> Dict[str, Any]:
        subscriber = await self._subscriber_by_token(token)
        return {
            "email": subscriber.email,
            "name": subscriber.name,
            "preferences": subscriber.preferences,
            "tags": subscriber.tags,
            "isActive": subscriber.is_active,
        }

    async def update_preferences(
        self,
        token: str,
        name: Optional[str] = None,
        preferences: Optional[Dict[str, Any]] = None,
        tags: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        subscriber = await self._subscriber_by_token(token)

        updates: Dict[str, Any] = {
            "preferences": _merge_preferences(subscriber.preferences, preferences)
        }
        if name is not None:
            updates["name"] = sanitize_input(name)
        if tags is not None:
            updates["tags"] = tags

        subscriber = await self.subscribers.update(subscriber.model_copy(update=updates))
        return {
            "email": subscriber.email,
            "name": subscriber.name,
            "preferences": subscriber.preferences,
            "tags": subscriber.tags,
        }

    async def _subscriber_by_token(self, token: str) -> NewsletterSubscriber:
        subscriber = await self.subscribers.get_by_token(token) if token else None
        if not subscriber:
            raise NotFoundError("Subscriber not found")
        return subscriber

    # --- Subscriber administration ------------------------------------------

    async def list_subscribers(
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
        if sort_by not in SORT_COLUMNS:
            raise NewsletterError(
                f"Invalid sort field: {sort_by}. Allowed: {', '.join(SORT_COLUMNS)}"
            )
        if sort_order not in ("asc", "desc"):
            raise NewsletterError("Sort order must be 'asc' or 'desc'")

        return await self.subscribers.find_page(
            company_id, page, limit,
            search=search,
            tags=tags,
            is_active=is_active,
            frequency=frequency,
            sort_by=sort_by,
            sort_order=sort_order
        )

    async def import_subscribers(
        self, company_id: str, request: ImportSubscribersRequest
    ) -> Dict[str, Any]:
        if not company_id:
            raise ForbiddenError("Company authentication required")

        results = {"imported": 0, "skipped": 0, "errors": []}

        for row in request.subscribers:
            email = normalize_email(row.email)
            try:
                if not email:
                    raise NewsletterError("Email is required")
                if not validate_email(email):
                    raise NewsletterError("Invalid email format")

                existing = await self.subscribers.get_by_email(email, company_id)
                if existing:
                    if request.skip_existing:
                        results["skipped"] += 1
                        continue

                    merged_tags = list(dict.fromkeys([*existing.tags, *request.tags]))
                    updates = {
                        "name": sanitize_input(row.name) or existing.name,
                        "tags": merged_tags,
                        "is_active": True,
                    }
                    if not existing.is_active:
                        updates.update(subscribed_at=_utcnow(), unsubscribed_at=None)
                    await self.subscribers.update(existing.model_copy(update=updates))
                else:
                    await self.subscribers.create(ensure_unsubscribe_token(NewsletterSubscriber(
                        email=email,
                        name=sanitize_input(row.name),
                        company_id=company_id,
                        tags=list(request.tags),
                        source=SubscriberSource.IMPORT,
                    )))
                results["imported"] += 1

            except NewsletterError as e:
                results["errors"].append({"email": email or "unknown", "error": e.message})
            except Exception as e:
                # One bad row never aborts the batch
                logger.error(f"Subscriber import failed for {email}: {e}")
                results["errors"].append({"email": email or "unknown", "error": str(e)})

        logger.info(
            f"Subscriber import for company {company_id}: {results['imported']} imported, "
            f"{results['skipped']} skipped, {len(results['errors'])} errors"
        )
        return results

    # --- Campaigns ----------------------------------------------------------

    async def create_campaign(
        self, company_id: Optional[str], user_id: str, request: CreateCampaignRequest
    ) -> NewsletterCampaign:
        if not company_id:
            raise ForbiddenError("Company authentication required")

        content = request.content
        if request.template_id:
            template = await self._accessible_template(request.template_id, company_id)
            rendered = render_template(template, request.template_values)
            content = CampaignContent(html=rendered["html"], text=rendered["text"])
            await self.templates.mark_used(template.id)

        if not request.name or not request.subject or not content or not content.html:
            raise NewsletterError("Name, subject, and HTML content are required")

        scheduled_at = request.scheduled_at
        if scheduled_at is not None:
            scheduled_at = _aware(scheduled_at)
            if scheduled_at <= _utcnow():
                raise NewsletterError("Scheduled time must be in the future")

        try:
            campaign_settings = CampaignSettings.model_validate({
                "fromName": settings.campaign_from_name,
                **(request.settings or {}),
            })
        except ValidationError as e:
            raise NewsletterError(f"Invalid campaign settings: {e.errors()[0]['msg']}")

        campaign = NewsletterCampaign(
            name=request.name,
            subject=request.subject,
            content=content,
            company_id=company_id,
            created_by=user_id,
            scheduled_at=scheduled_at,
            **{
                key: value for key, value in {
                    "segmentation": request.segmentation,
                    "ab_test": request.ab_test,
                }.items() if value is not None
            },
            settings=campaign_settings,
        )
        campaign = await self.campaigns.create(campaign)

        if scheduled_at is not None:
            campaign = await self._move(campaign, CampaignStatus.SCHEDULED)

        return campaign

    async def list_campaigns(
        self,
        company_id: Optional[str],
        page: int,
        limit: int,
        status: Optional[str] = None
    ) -> Tuple[List[NewsletterCampaign], int]:
        if status:
            try:
                status = CampaignStatus(status).value
            except ValueError:
                raise NewsletterError(f"Unknown campaign status: {status}")
        return await self.campaigns.find_page(company_id, page, limit, status=status)

    async def get_campaign(self, campaign_id: str, company_id: Optional[str]) -> NewsletterCampaign:
        campaign = await self.campaigns.get(campaign_id, company_id)
        if not campaign:
            raise NotFoundError("Campaign not found")
        return campaign

    async def change_campaign_status(
        self, campaign_id: str, company_id: Optional[str], target: str
    ) -> NewsletterCampaign:
        target_status = CampaignStatus(target)
        if target_status not in MANUAL_STATUSES:
            raise NewsletterError(
                f"Status '{target_status.value}' is set by dispatch; use the send endpoint"
            )

        campaign = await self.get_campaign(campaign_id, company_id)
        return await self._move(campaign, target_status)

    async def record_campaign_analytics(
        self, campaign_id: str, company_id: Optional[str], delta: CampaignAnalyticsUpdate
    ) -> NewsletterCampaign:
        campaign = await self.get_campaign(campaign_id, company_id)
        updated = await self.campaigns.add_analytics(campaign.id, delta)
        if not updated:
            raise NotFoundError("Campaign not found")
        return updated

    async def send_campaign(self, campaign_id: str, company_id: Optional[str]) -> Dict[str, Any]:
        """Dispatch a draft or scheduled campaign to its audience right away"""
        campaign = await self.get_campaign(campaign_id, company_id)
        campaign = await self._move(campaign, CampaignStatus.SENDING)

        try:
            audience = [
                subscriber
                for subscriber in await self.subscribers.list_active(campaign.company_id)
                if matches_segmentation(subscriber, campaign.segmentation)
            ]

            delivered: List[str] = []
            failures = 0
            for subscriber in audience:
                try:
                    await self._deliver(campaign, subscriber)
                    delivered.append(subscriber.id)
                except Exception as e:
                    failures += 1
                    logger.warning(
                        f"Campaign {campaign.id} delivery to {subscriber.email} failed: {e}"
                    )

            await self.subscribers.increment_sent(delivered)

            # Only deltas: provider counts may be recorded while dispatch runs
            await self.campaigns.add_analytics(campaign.id, CampaignAnalyticsUpdate(
                total_recipients=len(audience),
                total_sent=len(delivered),
            ))

        except Exception as e:
            logger.error(f"Campaign {campaign.id} dispatch aborted: {e}")
            await self._move(campaign, CampaignStatus.FAILED)
            raise

        if audience and not delivered:
            final = await self._move(campaign, CampaignStatus.FAILED)
        else:
            final = await self._move(campaign, CampaignStatus.SENT, sent_at=_utcnow())

        logger.info(
            f"Campaign {campaign.id} finished as {final.status}: "
            f"{len(delivered)} sent, {failures} failed of {len(audience)}"
        )
        return {
            "campaign": final,
            "recipients": len(audience),
            "sent": len(delivered),
            "failed": failures,
        }

    async def _deliver(self, campaign: NewsletterCampaign, subscriber: NewsletterSubscriber):
        if not self.email_sender:
            raise NewsletterError("Email delivery is not configured")

        unsubscribe_url = self.email_sender.unsubscribe_url(subscriber.unsubscribe_token)
        values = {
            "name": subscriber.name or "",
            "email": subscriber.email,
            "unsubscribeUrl": unsubscribe_url,
        }

        html = substitute(campaign.content.html, values)
        text = substitute(campaign.content.text, values)
        if campaign.settings.allow_unsubscribe:
            html += f'\n<p style="font-size: 11px;"><a href="{unsubscribe_url}">Unsubscribe</a></p>'
            if text:
                text += f"\n\nUnsubscribe: {unsubscribe_url}"

        await self.email_sender.send_campaign_email(
            to_email=subscriber.email,
            subject=substitute(campaign.subject, values),
            html_content=html,
            text_content=text,
            from_name=campaign.settings.from_name,
            reply_to=campaign.settings.reply_to_email
        )

    async def _move(
        self,
        campaign: NewsletterCampaign,
        target: CampaignStatus,
        sent_at: Optional[datetime] = None
    ) -> NewsletterCampaign:
        """Apply one state machine step, guarded against concurrent changes"""
        validate_transition(campaign.status, target)

        updated = await self.campaigns.update_status(
            campaign.id, CampaignStatus(campaign.status).value, target.value, sent_at
        )
        if not updated:
            raise ConflictError("Campaign status was changed by another request")

        await self._notify(updated.company_id, "newsletter.campaign.status", {
            "campaignId": updated.id,
            "from": CampaignStatus(campaign.status).value,
            "status": updated.status,
        })
        return updated

    async def _notify(self, company_id: Optional[str], event: str, data: Dict[str, Any]):
        if not self.notifier or not company_id:
            return
        try:
            await self.notifier.send_to_room(f"company:{company_id}", {"event": event, "data": data})
        except Exception as e:
            logger.warning(f"Realtime notification {event} failed: {e}")

    # --- Templates ----------------------------------------------------------

    async def create_template(
        self,
        company_id: Optional[str],
        user_id: str,
        is_super_admin: bool,
        request: CreateTemplateRequest
    ) -> NewsletterTemplate:
        if request.is_global and not is_super_admin:
            raise ForbiddenError("Only super admins can create global templates")
        if not request.is_global and not company_id:
            raise ForbiddenError("Company authentication required")

        template = NewsletterTemplate(
            name=request.name,
            description=request.description,
            company_id=None if request.is_global else company_id,
            is_global=request.is_global,
            category=request.category,
            thumbnail=request.thumbnail,
            content=request.content,
            variables=request.variables,
            created_by=user_id,
        )
        return await self.templates.create(template)

    async def list_templates(
        self, company_id: Optional[str], category: Optional[str] = None
    ) -> List[NewsletterTemplate]:
        return await self.templates.list_available(company_id, category)

    async def render_template_by_id(
        self,
        template_id: str,
        company_id: Optional[str],
        values: Dict[str, Any],
        is_super_admin: bool = False
    ) -> Dict[str, Optional[str]]:
        template = await self._accessible_template(template_id, company_id, is_super_admin)
        rendered = render_template(template, values)
        await self.templates.mark_used(template.id)
        return rendered

    async def _accessible_template(
        self, template_id: str, company_id: Optional[str], is_super_admin: bool = False
    ) -> NewsletterTemplate:
        template = await self.templates.get(template_id)
        if (
            not template
            or not template.is_active
            or not (template.is_global or is_super_admin or template.company_id == company_id)
        ):
            raise NotFoundError("Template not found")
        return template

    # --- Analytics ----------------------------------------------------------

    async def get_analytics(
        self,
        company_id: Optional[str],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Dict[str, Any]:
        end = _aware(end) if end else _utcnow()
        start = _aware(start) if start else end - ANALYTICS_WINDOW
        if start > end:
            raise NewsletterError("Start date must be before end date")

        return {
            "subscribers": await self.subscribers.stats(company_id, start, end),
            "campaigns": await self.campaigns.stats(company_id, start, end),
            "unsubscriptions": await self.unsubscriptions.reason_counts(company_id, start, end),
            "growthTrends": await self.subscribers.growth_trends(company_id, start, end),
            "period": {"start": start, "end": end},
        }
