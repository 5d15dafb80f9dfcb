# booking_api/utils/responses.py
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from booking_api.utils.pagination import format_pagination_response

def _envelope(success: bool, message: str, data: Any, status_code: int) -> Dict[str, Any]:
    return {
        "success": success,
        "message": message,
        "data": jsonable_encoder(data, by_alias=True),
        "statusCode": status_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

def success_response(
    message: str, data: Any = None, status_code: int = status.HTTP_200_OK
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=_envelope(True, message, data, status_code),
    )

def error_response(
    message: str,
    data: Any = None,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    errors: Optional[list] = None,
) -> JSONResponse:
    content = _envelope(False, message, data, status_code)
    if errors is not None:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content)

def paginated_response(
    message: str, data: Sequence[Any], total: int, page: int, limit: int
) -> JSONResponse:
    """``{success, message, data, pagination}`` for list endpoints"""
    content = format_pagination_response(data, total, page, limit, message)
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=jsonable_encoder(content, by_alias=True),
    )
