from mongoengine import CASCADE, ReferenceField

from vidnet.models.account import Account
from vidnet.models.base import BaseDocument


class Subscription(BaseDocument):
    """Directed edge: `subscriber` follows `channel`.

    Edges are only ever created or deleted. The compound unique index keeps
    at most one edge per (subscriber, channel) pair even under concurrent
    toggles. Deleting either account deletes the edge.
    """
    subscriber = ReferenceField(document_type=Account, required=True, null=False, reverse_delete_rule=CASCADE)
    channel = ReferenceField(document_type=Account, required=True, null=False, reverse_delete_rule=CASCADE)

    meta = {
        "collection": "subscriptions",
        "indexes": [
            {"fields": ["subscriber", "channel"], "unique": True},
            {"fields": ["channel", "created_at"]},
            {"fields": ["subscriber", "created_at"]},
        ],
    }
