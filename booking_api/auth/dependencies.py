# booking_api/auth/dependencies.py
from fastapi import Depends, HTTPException, Cookie, Header, status
from jose import jwt, JWTError
from pydantic import ValidationError
from typing import Optional
from booking_api.config import settings
from booking_api.auth.models import TokenData
import logging

logger = logging.getLogger(__name__)

def decode_access_token(token: str) -> TokenData:
    """Verify the signature and expiry, then read the claims"""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )
        return TokenData.model_validate(payload)
    except (JWTError, ValidationError) as e:
        logger.warning(f"Rejected access token: {type(e).__name__}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials"
        )

def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credentials:
        return None
    return credentials.strip()

async def get_current_user(
    access_token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None)
) -> TokenData:
    """Get current user from the access token cookie or a Bearer header - REQUIRED authentication"""
    token = access_token or _bearer_token(authorization)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return decode_access_token(token)

async def require_company_access(
    user: TokenData = Depends(get_current_user)
) -> TokenData:
    """Admin endpoints need a company or the super admin flag"""
    if not user.company_id and not user.is_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied"
        )
    return user
