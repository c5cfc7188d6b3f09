from bson.objectid import ObjectId
from mongoengine import CASCADE, BooleanField, FloatField, IntField, ReferenceField, StringField

from vidnet.models.account import Account, PUBLIC_PROFILE_FIELDS
from vidnet.models.base import BaseDocument, render


class Video(BaseDocument):
    """Published media owned by one account.

    Fields:
    - video_file / thumbnail (str): media references
    - title / description (str)
    - duration (float): seconds, as reported by the media host
    - views (int)
    - is_published (bool)
    - owner (ref): account
    """
    video_file = StringField(required=True, null=False)
    thumbnail = StringField(required=True, null=False)
    title = StringField(required=True, null=False)
    description = StringField(required=True, null=False)
    duration = FloatField(required=True, null=False, default=0.0, min_value=0)
    views = IntField(required=True, null=False, default=0, min_value=0)
    is_published = BooleanField(required=True, null=False, default=True)
    owner = ReferenceField(document_type=Account, required=True, null=False, reverse_delete_rule=CASCADE)

    default_exclude = ("owner", "metadata")

    meta = {
        "collection": "videos",
        "indexes": [
            {"fields": ["owner", "-created_at"]},
            {"fields": ["is_published", "-created_at"]},
        ],
    }

    @property
    def owner_id(self) -> ObjectId:
        """Owner id without dereferencing the account."""
        owner = self._data.get("owner")
        return getattr(owner, "id", owner)


def render_videos(videos: list[Video]) -> list[dict]:
    """Render videos with their owners' public profiles, loaded in one query."""
    owner_ids = list({v.owner_id for v in videos})
    owners = {
        doc["_id"]: render(doc, PUBLIC_PROFILE_FIELDS)
        for doc in Account.objects(id__in=owner_ids).only(*PUBLIC_PROFILE_FIELDS).as_pymongo()
    }
    items = []
    for video in videos:
        item = video.to_output()
        item["owner"] = owners.get(video.owner_id)
        items.append(item)
    return items
