"""Media host integration: the backend only ever deletes assets.

Uploads happen against the media host directly; the API stores the public
URLs it hands back. When a reference is replaced or its owner deleted, the
superseded object is removed from the bucket.
"""
from __future__ import annotations

import logging

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import Request

from vidnet.utils.config import Settings


logger = logging.getLogger(__name__)


class MediaStorage:
    def __init__(self, settings: Settings, client=None):
        self.bucket = settings.s3_bucket
        self.public_base_url = settings.media_public_base_url.rstrip("/")
        self._settings = settings
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self._settings.s3_endpoint_url,
                aws_access_key_id=self._settings.s3_access_key,
                aws_secret_access_key=self._settings.s3_secret_key,
                config=Config(signature_version="s3v4"),
            )
        return self._client

    def key_from_url(self, url: str | None) -> str | None:
        """Object key for a URL we serve, None for anything else."""
        if not url or not self.public_base_url:
            return None
        prefix = self.public_base_url + "/"
        if not url.startswith(prefix):
            return None
        key = url[len(prefix):].split("?", 1)[0].split("#", 1)[0].lstrip("/")
        return key or None

    def delete(self, url: str) -> bool:
        """Remove the object behind `url`. Returns False when it is not ours."""
        key = self.key_from_url(url)
        if key is None:
            return False
        self.client.delete_object(Bucket=self.bucket, Key=key)
        logger.info("Deleted media object %s", key)
        return True

    def discard(self, url: str | None) -> None:
        """Best-effort delete; the primary write already succeeded."""
        if not url:
            return
        try:
            self.delete(url)
        except (BotoCoreError, ClientError) as e:
            logger.warning("Failed to delete media %s: %s", url, e)


def get_media_storage(request: Request) -> MediaStorage:
    return MediaStorage(request.app.state.settings)
