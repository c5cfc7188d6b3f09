"""Subscription graph queries.

Listings work page-at-a-time: one query for the page of edges, one batch load
of the profiles on the other end, and one batch query for the per-row
annotation. Cost therefore follows the page size, not the channel size.
"""
from __future__ import annotations

import logging

from bson import ObjectId
from mongoengine.errors import NotUniqueError

from vidnet.models.account import Account, PUBLIC_PROFILE_FIELDS, normalize_username
from vidnet.models.base import render
from vidnet.models.subscription import Subscription
from vidnet.utils.errors import NotFound, ValidationError
from vidnet.utils.response import paginated


logger = logging.getLogger(__name__)

CREATION_ORDER = ("created_at", "id")
CHANNEL_PROFILE_FIELDS = ("username", "full_name", "email", "avatar", "cover_image", "created_at")


def _profiles_by_id(account_ids: list[ObjectId]) -> dict[ObjectId, dict]:
    """Public profiles for a batch of accounts, keyed by id."""
    docs = Account.objects(id__in=account_ids).only(*PUBLIC_PROFILE_FIELDS).as_pymongo()
    return {doc["_id"]: render(doc, PUBLIC_PROFILE_FIELDS) for doc in docs}


class GraphQueryEngine:
    def toggle_subscription(self, subscriber_id: ObjectId, channel_id: ObjectId) -> dict:
        """Subscribe if no edge exists, unsubscribe otherwise."""
        if subscriber_id == channel_id:
            raise ValidationError("You cannot subscribe to your own channel")
        if not Account.objects(id=channel_id).only("id").first():
            raise NotFound("Channel not found")

        # At most one edge exists, so exactly one of two racing toggles sees it go away
        deleted = Subscription.objects(subscriber=subscriber_id, channel=channel_id).delete()
        if deleted:
            logger.info("Account %s unsubscribed from %s", subscriber_id, channel_id)
            return {"subscribed": False}

        try:
            Subscription(subscriber=subscriber_id, channel=channel_id).save()
        except NotUniqueError:
            # A concurrent toggle inserted the same edge first; the outcome is the same
            logger.info("Duplicate subscription %s -> %s ignored", subscriber_id, channel_id)
        else:
            logger.info("Account %s subscribed to %s", subscriber_id, channel_id)
        return {"subscribed": True}

    def _edge_page(self, side: str, page: int, limit: int, **match) -> tuple[list[ObjectId], int]:
        edges = Subscription.objects(**match)
        total = edges.count()
        rows = edges.order_by(*CREATION_ORDER).skip((page - 1) * limit).limit(limit).only(side).as_pymongo()
        return [row[side] for row in rows], total

    def list_subscribers(self, channel_id: ObjectId, page: int = 1, limit: int = 10) -> dict:
        """Page of accounts following `channel_id`, oldest edge first.

        Each row carries `is_mutually_subscribed`: the channel follows that
        subscriber back.
        """
        subscriber_ids, total = self._edge_page("subscriber", page, limit, channel=channel_id)
        if not subscriber_ids:
            return paginated([], page, limit, total)

        profiles = _profiles_by_id(subscriber_ids)
        followed_back = {
            row["channel"]
            for row in Subscription.objects(subscriber=channel_id, channel__in=subscriber_ids).only("channel").as_pymongo()
        }

        items = [
            {**profiles[subscriber_id], "is_mutually_subscribed": subscriber_id in followed_back}
            for subscriber_id in subscriber_ids
            if subscriber_id in profiles
        ]
        return paginated(items, page, limit, total)

    def list_subscribed_channels(self, subscriber_id: ObjectId, page: int = 1, limit: int = 10) -> dict:
        """Page of channels `subscriber_id` follows, with their subscriber counts."""
        channel_ids, total = self._edge_page("channel", page, limit, subscriber=subscriber_id)
        if not channel_ids:
            return paginated([], page, limit, total)

        profiles = _profiles_by_id(channel_ids)
        counts = self.subscriber_counts(channel_ids)

        items = [
            {**profiles[channel_id], "subscriber_count": counts.get(channel_id, 0)}
            for channel_id in channel_ids
            if channel_id in profiles
        ]
        return paginated(items, page, limit, total)

    def subscriber_counts(self, channel_ids: list[ObjectId]) -> dict[ObjectId, int]:
        """Incoming edge count per channel, in one aggregation."""
        coll = Subscription._get_collection()
        cursor = coll.aggregate([
            {"$match": {"channel": {"$in": channel_ids}}},
            {"$group": {"_id": "$channel", "count": {"$sum": 1}}},
        ])
        return {row["_id"]: row["count"] for row in cursor}

    def channel_profile(self, username: str, viewer_id: ObjectId | None) -> dict:
        """Public profile of a channel with its follower aggregates."""
        if not username or not username.strip():
            raise ValidationError("Username is required")
        channel = (
            Account.objects(username=normalize_username(username))
            .only(*CHANNEL_PROFILE_FIELDS)
            .as_pymongo()
            .first()
        )
        if not channel:
            raise NotFound("Channel does not exist")

        channel_id = channel["_id"]
        is_subscribed = False
        if viewer_id is not None:
            is_subscribed = Subscription.objects(subscriber=viewer_id, channel=channel_id).only("id").first() is not None

        return {
            **render(channel, CHANNEL_PROFILE_FIELDS),
            "subscriber_count": Subscription.objects(channel=channel_id).count(),
            "subscribed_to_count": Subscription.objects(subscriber=channel_id).count(),
            "is_subscribed": is_subscribed,
        }


def get_graph_engine() -> GraphQueryEngine:
    return GraphQueryEngine()
