# greencandle/pagination.py
import math
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def parse_pagination(page: Optional[int] = None, limit: Optional[int] = None) -> Tuple[int, int, int]:
    """(page, limit, skip) with page >= 1 and limit clamped to [1, MAX_LIMIT]."""
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or DEFAULT_LIMIT), 1), MAX_LIMIT)
    return page, limit, (page - 1) * limit


def format_pagination_response(
    items: List[Any],
    total: int,
    page: int,
    limit: int,
    key: str = "items",
) -> Dict[str, Any]:
    pages = math.ceil(total / limit) if limit else 0
    return {
        "results": len(items),
        "data": {key: items},
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": pages,
            "hasNextPage": page < pages,
            "hasPrevPage": page > 1,
        },
    }
