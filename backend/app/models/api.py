"""
Response envelope helpers: {"data": ..., "error": null}.
"""

import math
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder


def format_response(data: Any, meta: Optional[dict] = None) -> dict:
    """Wrap a successful result."""
    body = {"data": jsonable_encoder(data, by_alias=True), "error": None}
    if meta is not None:
        body["meta"] = meta
    return body


def format_paginated_response(data: list, total: int, page: int, limit: int) -> dict:
    return format_response(data, meta={
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    })
