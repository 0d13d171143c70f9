"""Pagination helpers for list endpoints."""
import math
from typing import Any, Dict, List, Tuple

from flask import current_app


def parse_pagination(args) -> Tuple[int, int]:
    """Read page/limit query args, clamped to sane bounds."""
    default_limit = current_app.config.get('DEFAULT_PAGE_SIZE', 25)
    max_limit = current_app.config.get('MAX_PAGE_SIZE', 100)

    page = args.get('page', 1, type=int) or 1
    limit = args.get('limit', default_limit, type=int) or default_limit
    return max(page, 1), min(max(limit, 1), max_limit)


def paginate(query, page: int, limit: int) -> Tuple[List[Any], Dict[str, int]]:
    """Apply offset/limit to a query and build the pagination block."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, {
        'page': page,
        'limit': limit,
        'total': total,
        'pages': math.ceil(total / limit) if limit else 0,
    }
