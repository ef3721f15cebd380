# repository/snapshot_store.py
from typing import Any, List, Optional, Protocol
import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from util.errors import ObjectNotFound, SnapshotStoreError
import logging

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


class SnapshotStore(Protocol):
    """
    Narrow object-store contract used by the snapshot lifecycle.
    Every call is remote I/O and may fail; implementations never retry.
    """

    def put(self, key: str, data: bytes) -> None: ...

    def get(self, key: str) -> bytes: ...

    def list(self, key_prefix: str) -> List[str]: ...

    def delete(self, key: str) -> None: ...


class S3SnapshotStore:
    """
    S3-compatible (R2, MinIO, AWS) implementation over one bucket.

    Flow:
    - botocore retries are capped at one attempt so failures reach the lifecycle
      manager, which owns the retry/degrade policy.
    - NoSuchKey/404 on get -> ObjectNotFound; every other failure -> SnapshotStoreError.
    """

    def __init__(
        self,
        *,
        bucket: str,
        endpoint_url: Optional[str],
        access_key_id: Optional[str],
        secret_access_key: Optional[str],
        region: str = "auto",
        timeout_seconds: float = 60.0,
        client: Any = None,
    ) -> None:
        self._bucket = bucket
        if client is None:
            session = boto3.Session(
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                region_name=region,
            )
            client = session.client(
                "s3",
                region_name=region,
                endpoint_url=endpoint_url,
                config=BotoConfig(
                    connect_timeout=timeout_seconds,
                    read_timeout=timeout_seconds,
                    retries={"max_attempts": 1, "mode": "standard"},
                ),
            )
        self._s3 = client

    def put(self, key: str, data: bytes) -> None:
        try:
            self._s3.put_object(Bucket=self._bucket, Key=key, Body=data)
        except (ClientError, BotoCoreError) as e:
            raise SnapshotStoreError("put", f"{key}: {e}") from e

    def get(self, key: str) -> bytes:
        try:
            resp = self._s3.get_object(Bucket=self._bucket, Key=key)
            return resp["Body"].read()
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _NOT_FOUND_CODES:
                raise ObjectNotFound(key) from e
            raise SnapshotStoreError("get", f"{key}: {e}") from e
        except BotoCoreError as e:
            raise SnapshotStoreError("get", f"{key}: {e}") from e

    def list(self, key_prefix: str) -> List[str]:
        keys: List[str] = []
        try:
            paginator = self._s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=key_prefix):
                for obj in page.get("Contents", []) or []:
                    keys.append(obj["Key"])
        except (ClientError, BotoCoreError) as e:
            raise SnapshotStoreError("list", f"{key_prefix}: {e}") from e
        return keys

    def delete(self, key: str) -> None:
        try:
            self._s3.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise SnapshotStoreError("delete", f"{key}: {e}") from e
