"""Media storage helper and Redis-backed limits."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from vidnet.services.media import MediaStorage
from vidnet.services.rate_limit import limit_attempts, reset_attempts
from vidnet.utils.errors import TooManyRequests


def test_key_from_url(settings):
    storage = MediaStorage(settings, client=MagicMock())
    assert storage.key_from_url("https://media.test/bucket/avatars/a.png?v=2") == "avatars/a.png"
    assert storage.key_from_url("https://elsewhere.test/avatars/a.png") is None
    assert storage.key_from_url("https://media.test/bucket/") is None
    assert storage.key_from_url(None) is None


def test_delete_only_touches_own_objects(settings):
    client = MagicMock()
    storage = MediaStorage(settings, client=client)
    assert storage.delete("https://elsewhere.test/a.png") is False
    assert storage.delete("https://media.test/bucket/thumbs/t.jpg") is True
    client.delete_object.assert_called_once_with(Bucket=settings.s3_bucket, Key="thumbs/t.jpg")


def test_discard_swallows_storage_errors(settings, caplog):
    client = MagicMock()
    client.delete_object.side_effect = ClientError({"Error": {"Code": "500", "Message": "boom"}}, "DeleteObject")
    storage = MediaStorage(settings, client=client)
    storage.discard("https://media.test/bucket/thumbs/t.jpg")
    assert "Failed to delete media" in caplog.text


def test_limit_attempts_blocks_after_limit(redis_client):
    for _ in range(3):
        limit_attempts("login:test", limit=3, window_seconds=60)
    with pytest.raises(TooManyRequests):
        limit_attempts("login:test", limit=3, window_seconds=60)
    assert 0 < redis_client.ttl("login:test") <= 60

    reset_attempts("login:test")
    limit_attempts("login:test", limit=3, window_seconds=60)


def test_limit_attempts_disabled(redis_client):
    for _ in range(10):
        limit_attempts("login:off", limit=0, window_seconds=60)
    assert redis_client.get("login:off") is None
