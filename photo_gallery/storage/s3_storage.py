import logging
import os
from datetime import datetime
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .photo_storage import (
    DEFAULT_CONTAINER,
    ObjectStoreError,
    PhotoStorage,
    StoreUnavailableError,
    WriteFailedError,
    make_object_name,
)

logger = logging.getLogger(__name__)


class S3Storage(PhotoStorage):
    """
    Photo storage using an S3 (or S3-compatible, e.g. MinIO) bucket.

    The bucket plays the role of the container. URLs are path-style
    (``{base}/{bucket}/{key}``) so the key can always be recovered from them.
    """

    def __init__(
        self,
        bucket: str | None = None,
        client: Any | None = None,
    ) -> None:
        # Configuration via env variables
        self.container = bucket or os.getenv("CONTAINER_NAME", DEFAULT_CONTAINER)
        self.endpoint = os.getenv("S3_ENDPOINT") or None
        self.region = os.getenv("S3_REGION", "us-east-1")
        self.public_url = os.getenv("S3_PUBLIC_URL") or None
        self._client: Any | None = client
        if self._client is None:
            try:
                self._client = boto3.session.Session().client(
                    "s3",
                    endpoint_url=self.endpoint,
                    region_name=self.region,
                    aws_access_key_id=os.getenv("S3_ACCESS_KEY") or None,
                    aws_secret_access_key=os.getenv("S3_SECRET_KEY") or None,
                )
            except (BotoCoreError, ValueError):
                logger.exception("S3 client initialisation failed")
                return
        logger.info("Using S3 bucket %s", self.container)

    def url_for(self, key: str) -> str:
        if self.public_url:
            base = self.public_url.rstrip("/")
        elif self.endpoint:
            base = self.endpoint.rstrip("/")
        else:
            base = f"https://s3.{self.region}.amazonaws.com"
        return f"{base}/{self.container}/{key}"

    def put(self, data: bytes, original_name: str, content_type: str) -> str:
        if self._client is None:
            error_message = "S3 client not initialized"
            raise StoreUnavailableError(error_message)
        key = make_object_name(original_name)
        try:
            response = self._client.put_object(
                Bucket=self.container,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            error_message = f"S3 upload of {key} failed: {exc}"
            raise WriteFailedError(error_message) from exc
        request_id = response.get("ResponseMetadata", {}).get("RequestId")
        logger.info("Uploaded %s to S3 (request id %s)", key, request_id)
        return self.url_for(key)

    def delete(self, url_or_key: str) -> None:
        if self._client is None:
            logger.error("S3 client not initialized, cannot delete %s", url_or_key)
            return
        key = self.key_for(url_or_key)
        try:
            # DeleteObject succeeds for keys that do not exist
            self._client.delete_object(Bucket=self.container, Key=key)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in {"NoSuchKey", "404"}:
                return
            logger.exception("Error deleting %s from S3", key)
            return
        except BotoCoreError:
            logger.exception("Error deleting %s from S3", key)
            return
        logger.info("Deleted %s from S3", key)

    def list_objects(self) -> dict[str, datetime]:
        if self._client is None:
            error_message = "S3 client not initialized"
            raise StoreUnavailableError(error_message)
        objects: dict[str, datetime] = {}
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.container):
                for entry in page.get("Contents", []):
                    objects[entry["Key"]] = entry["LastModified"]
        except (BotoCoreError, ClientError) as exc:
            error_message = f"S3 listing of {self.container} failed: {exc}"
            raise ObjectStoreError(error_message) from exc
        return objects
