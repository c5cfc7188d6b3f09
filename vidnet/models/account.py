from mongoengine import EmailField, ListField, ObjectIdField, StringField

from vidnet.models.base import BaseDocument


# Profile fields joined into listing rows (subscribers, channels, video owners)
PUBLIC_PROFILE_FIELDS = ("username", "full_name", "avatar")
# Fields an account is loaded without outside of session handling
PRIVATE_FIELDS = ("password", "refresh_token")


def normalize_username(username: str) -> str:
    return username.strip().lower()


def normalize_email(email: str) -> str:
    return email.strip().lower()


class Account(BaseDocument):
    """Registered user, who is also a channel.

    Fields:
    - username (str, unique): stored trimmed and lowercase, never contains `@`
    - email (str, unique): stored lowercase
    - full_name (str)
    - password (str, hashed): bcrypt hash, never rendered
    - avatar / cover_image (str): media references returned by the media host
    - refresh_token (str|None): the single currently valid refresh token
    - watch_history (list[ObjectId]): video ids, oldest first
    """
    username = StringField(required=True, null=False)
    email = EmailField(required=True, null=False)
    full_name = StringField(required=True, null=False)
    password = StringField(required=True, null=False)
    avatar = StringField(required=True, null=False)
    cover_image = StringField(required=False, null=False, default="")
    refresh_token = StringField(required=False, null=True)
    watch_history = ListField(ObjectIdField(), default=list)

    hidden_fields = PRIVATE_FIELDS
    default_exclude = ("watch_history", "metadata")

    meta = {
        "collection": "accounts",
        "indexes": [
            {"fields": ["username"], "unique": True},
            {"fields": ["email"], "unique": True},
        ],
    }
