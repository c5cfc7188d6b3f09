from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from bson.objectid import ObjectId
from mongoengine import Document, DictField, DateTimeField


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sanitize(value: Any) -> Any:
    if isinstance(value, Document):
        return value.to_output() if hasattr(value, "to_output") else str(value.id)
    if isinstance(value, list):
        return [sanitize(v) for v in value]
    if isinstance(value, dict):
        return {k: sanitize(v) for k, v in value.items()}
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, ObjectId):
        return str(value)
    return value


def render(doc: Mapping[str, Any], fields: Iterable[str]) -> dict[str, Any]:
    """Render a raw document from `as_pymongo()`; `_id` becomes `id`."""
    data = {field: sanitize(doc.get(field)) for field in fields if field != "id"}
    data["id"] = str(doc["_id"])
    return data


class BaseDocumentMixin:
    # Never rendered, whatever `fields` a caller asks for
    hidden_fields: tuple[str, ...] = ()
    # Rendered only when a caller names them explicitly
    default_exclude: tuple[str, ...] = ("metadata",)

    def to_output(self, fields=None, exclude=None):
        data: dict[str, Any] = {}
        exclude = set(exclude or []) | set(self.hidden_fields)
        if fields is None:
            fields = [f for f in self._fields.keys() if f not in self.default_exclude]

        for field in fields:
            if field in exclude or field == "id":
                continue
            data[field] = sanitize(getattr(self, field))

        data["id"] = str(self.id)
        return data

    def to_dict(self, fields=None, exclude=None):
        return self.to_output(fields=fields, exclude=exclude)


class BaseDocument(Document, BaseDocumentMixin):
    metadata = DictField(default=dict, null=False)
    created_at = DateTimeField(default=utcnow, null=False)
    updated_at = DateTimeField(default=utcnow, null=False)

    meta = {
        "abstract": True,
    }

    def save(self, *args, **kwargs):
        self.updated_at = utcnow()
        return super().save(*args, **kwargs)
