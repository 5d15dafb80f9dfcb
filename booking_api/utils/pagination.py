# booking_api/utils/pagination.py
"""
Pagination helpers shared by every list endpoint.

Two layers on purpose: ``parse_pagination_params`` never fails and quietly
falls back to defaults, while ``validate_pagination_params`` reports every
violation so the HTTP dependency can reject a request with a 400.
"""
import math
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from fastapi import HTTPException, Request, status

from booking_api.config import settings

DEFAULT_LIMIT = 10
MAX_LIMIT = 100

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

def _parse_int(value: Any) -> Optional[int]:
    """Parse like JavaScript's parseInt: leading digits win, junk gives None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return int(value)
    match = _LEADING_INT.match(str(value))
    if not match:
        return None
    return int(match.group(1))

def parse_pagination_params(
    query: Mapping[str, Any],
    max_limit: int = MAX_LIMIT,
    default_limit: int = DEFAULT_LIMIT,
) -> Dict[str, int]:
    """Normalize raw page/limit query values into page, limit and skip"""
    page = _parse_int(query.get("page"))
    if not page or page < 1:
        page = 1

    limit = _parse_int(query.get("limit"))
    if not limit or limit < 1:
        limit = default_limit
    limit = min(max_limit, limit)

    return {"page": page, "limit": limit, "skip": (page - 1) * limit}

def validate_pagination_params(
    page: int, limit: int, max_limit: int = MAX_LIMIT
) -> Dict[str, Any]:
    errors: List[str] = []

    if page < 1:
        errors.append("Page must be greater than 0")

    if limit < 1:
        errors.append("Limit must be greater than 0")

    if limit > max_limit:
        errors.append(f"Limit cannot exceed {max_limit}")

    return {"isValid": not errors, "errors": errors}

def _total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0

def create_pagination_result(
    data: Sequence[Any], total: int, page: int, limit: int
) -> Dict[str, Any]:
    total_pages = _total_pages(total, limit)

    return {
        "data": list(data),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
    }

def get_pagination_metadata(page: int, limit: int, total: int) -> Dict[str, Any]:
    """Pagination block with 1-based start/end indexes for "showing X-Y of Z" labels"""
    total_pages = _total_pages(total, limit)

    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
        "startIndex": (page - 1) * limit + 1,
        "endIndex": min(page * limit, total),
    }

def format_pagination_response(
    data: Sequence[Any],
    total: int,
    page: int,
    limit: int,
    message: str = "Data fetched successfully",
) -> Dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "data": list(data),
        "pagination": get_pagination_metadata(page, limit, total),
    }

def apply_pagination(
    query: str, params: List[Any], page: int, limit: int
) -> Tuple[str, List[Any]]:
    """Append LIMIT/OFFSET placeholders to an asyncpg query"""
    next_param = len(params) + 1
    paginated = f"{query} LIMIT ${next_param} OFFSET ${next_param + 1}"
    return paginated, [*params, limit, (page - 1) * limit]

def pagination_params(
    max_limit: Optional[int] = None, default_limit: Optional[int] = None
):
    """Build a dependency that parses and strictly validates ?page=&limit="""
    resolved_max = max_limit or settings.pagination_max_limit
    resolved_default = default_limit or settings.pagination_default_limit

    async def dependency(request: Request) -> Dict[str, int]:
        params = parse_pagination_params(
            request.query_params,
            max_limit=resolved_max,
            default_limit=resolved_default,
        )

        validation = validate_pagination_params(
            params["page"], params["limit"], resolved_max
        )
        if not validation["isValid"]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "message": "Invalid pagination parameters",
                    "errors": validation["errors"],
                },
            )

        return params

    return dependency
