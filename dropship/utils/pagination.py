from typing import Any, Dict
from math import ceil


def paginate(page: int, limit: int, total: int) -> Dict[str, Any]:
    """Pagination metadata for list endpoints"""
    total_pages = ceil(total / limit) if limit > 0 else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalItems": total,
        "itemsPerPage": limit,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }


def page_offset(page: int, limit: int) -> int:
    return (page - 1) * limit
