from typing import Any

from bson import ObjectId
from bson.errors import InvalidId

from vidnet.utils.errors import ValidationError


def api_response(data: Any = None, message: str = "Success", status_code: int = 200) -> dict:
    """Success envelope returned by every endpoint."""
    return {
        "statusCode": status_code,
        "data": data,
        "message": message,
        "success": status_code < 400,
    }


def parse_object_id(value: str | None, name: str = "id") -> ObjectId:
    """Reject missing or malformed identifiers before any lookup happens."""
    if not value:
        raise ValidationError(f"{name} is required")
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {name}")


def paginated(items: list, page: int, limit: int, total: int) -> dict:
    pages = (total + limit - 1) // limit if limit else 0
    return {
        "items": items,
        "pagination": {"page": page, "limit": limit, "total": total, "pages": pages},
    }
