from __future__ import annotations

import json
import logging

from linkgiver_core.errors import StoreUnavailable, VersionConflict
from linkgiver_core.store.base import DocumentRef, JSONDoc, KeyedJSONStore

logger = logging.getLogger(__name__)

_CONFLICT_CODES = {"PreconditionFailed", "ConditionalRequestConflict", "412", "409"}
_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


class S3JSONStore(KeyedJSONStore):
    """JSON documents as objects in an S3-compatible bucket.

    Key: <prefix>/<name>.json
    Version token: the object's ETag; writes use If-Match / If-None-Match.
    """

    backend_name = "s3"

    def __init__(
        self,
        *,
        bucket: str,
        prefix: str = "data",
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str = "us-east-1",
        use_ssl: bool = True,
        max_retries: int = 1,
        client=None,
    ) -> None:
        super().__init__(max_retries=max_retries)
        self._bucket = bucket
        self._prefix = prefix.strip("/")
        self._endpoint_url = endpoint_url
        self._access_key = access_key
        self._secret_key = secret_key
        self._region = region
        self._use_ssl = use_ssl
        self._client = client

    def _get_client(self):
        if self._client is not None:
            return self._client

        import boto3
        from botocore.client import Config

        self._client = boto3.client(
            "s3",
            endpoint_url=self._endpoint_url,
            aws_access_key_id=self._access_key,
            aws_secret_access_key=self._secret_key,
            region_name=self._region,
            use_ssl=self._use_ssl,
            config=Config(s3={"addressing_style": "path"}),
        )
        return self._client

    def key_for(self, doc: DocumentRef) -> str:
        name = f"{doc.name}.json"
        return f"{self._prefix}/{name}" if self._prefix else name

    @staticmethod
    def _error_code(exc: Exception) -> str:
        response = getattr(exc, "response", None) or {}
        return str(response.get("Error", {}).get("Code", ""))

    def get_or_init(self, doc: DocumentRef) -> tuple[JSONDoc, str]:
        from botocore.exceptions import BotoCoreError, ClientError

        key = self.key_for(doc)
        client = self._get_client()
        try:
            r = client.get_object(Bucket=self._bucket, Key=key)
            raw = r["Body"].read()
            etag = r["ETag"]
        except ClientError as exc:
            if self._error_code(exc) not in _MISSING_CODES:
                raise StoreUnavailable(f"S3 read of {key} failed") from exc
        except BotoCoreError as exc:
            raise StoreUnavailable(f"S3 read of {key} failed") from exc
        else:
            try:
                value = json.loads(raw.decode("utf-8") or "{}")
            except ValueError as exc:
                raise StoreUnavailable(f"Invalid JSON in {key}") from exc
            if not isinstance(value, dict):
                raise StoreUnavailable(f"Expected a JSON object in {key}")
            return value, etag

        value = doc.initial_value()
        try:
            etag = self._put_object(key, value, if_none_match=True)
        except VersionConflict:
            logger.info("Lost the race to create %s; reading the winner", key)
            return self.get_or_init(doc)
        return value, etag

    def _put_object(
        self,
        key: str,
        value: JSONDoc,
        *,
        if_match: str | None = None,
        if_none_match: bool = False,
    ) -> str:
        from botocore.exceptions import BotoCoreError, ClientError

        kwargs: dict[str, object] = {
            "Bucket": self._bucket,
            "Key": key,
            "Body": json.dumps(value, indent=2).encode("utf-8"),
            "ContentType": "application/json",
        }
        if if_match:
            kwargs["IfMatch"] = if_match
        if if_none_match:
            kwargs["IfNoneMatch"] = "*"

        client = self._get_client()
        try:
            r = client.put_object(**kwargs)
        except ClientError as exc:
            if self._error_code(exc) in _CONFLICT_CODES:
                raise VersionConflict(f"{key} changed since it was read") from exc
            raise StoreUnavailable(f"S3 write of {key} failed") from exc
        except BotoCoreError as exc:
            raise StoreUnavailable(f"S3 write of {key} failed") from exc
        return r["ETag"]

    def put(
        self,
        doc: DocumentRef,
        value: JSONDoc,
        expected_version: str | None = None,
        *,
        message: str | None = None,
    ) -> str:
        return self._put_object(self.key_for(doc), value, if_match=expected_version)
