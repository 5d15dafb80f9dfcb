# booking_api/routes/newsletter_proxy.py - public unsubscribe/resubscribe pages talk to these
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr
from typing import Any, AsyncIterator, Dict, Optional
import httpx
import logging
from booking_api.config import settings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/public/newsletter", tags=["newsletter-public"])

BACKEND_NEWSLETTER_PATH = "/api/v1/newsletter"
PROXY_TIMEOUT = 10.0

class PublicUnsubscribeRequest(BaseModel):
    email: EmailStr
    reason: Optional[str] = None
    # Needed when subscriber emails are unique per company
    company: Optional[str] = None

class PublicResubscribeRequest(BaseModel):
    email: EmailStr
    token: str

async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(base_url=settings.backend_url, timeout=PROXY_TIMEOUT) as client:
        yield client

def _reshape(response: httpx.Response, fallback: str) -> JSONResponse:
    """Keep the backend's status code, pass on only success and message"""
    try:
        body = response.json()
    except ValueError:
        body = {}

    message = body.get("message") if isinstance(body, dict) else None
    if not message and isinstance(body, dict):
        message = body.get("detail") if isinstance(body.get("detail"), str) else None

    return JSONResponse(
        status_code=response.status_code,
        content={"success": response.is_success, "message": message or fallback}
    )

async def _forward(
    client: httpx.AsyncClient,
    path: str,
    payload: Dict[str, Any],
    action: str,
    params: Optional[Dict[str, str]] = None
) -> JSONResponse:
    try:
        response = await client.post(
            f"{BACKEND_NEWSLETTER_PATH}{path}", json=payload, params=params
        )
    except httpx.HTTPError as e:
        logger.error(f"Newsletter {action} proxy could not reach backend: {e}")
        return JSONResponse(
            status_code=502,
            content={"success": False, "message": "Newsletter service is unavailable"}
        )

    if not response.is_success:
        logger.warning(f"Newsletter {action} proxied with status {response.status_code}")

    fallback = f"Successfully {action}d" if response.is_success else f"Failed to {action}"
    return _reshape(response, fallback)

@router.post("/unsubscribe")
async def proxy_unsubscribe(
    request: PublicUnsubscribeRequest,
    client: httpx.AsyncClient = Depends(get_http_client)
):
    payload = request.model_dump(exclude_none=True, exclude={"company"})
    params = {"company": request.company} if request.company else None
    return await _forward(client, "/unsubscribe", payload, "unsubscribe", params)

@router.post("/resubscribe")
async def proxy_resubscribe(
    request: PublicResubscribeRequest,
    client: httpx.AsyncClient = Depends(get_http_client)
):
    return await _forward(client, "/resubscribe", request.model_dump(), "resubscribe")
