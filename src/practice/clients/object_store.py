"""Object store client for activity log blobs."""

from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from aiobotocore.session import get_session
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from practice.config import get_settings
from practice.errors import StorageError


@dataclass(frozen=True)
class ObjectInfo:
    """One listed object."""

    key: str


@dataclass
class ListPage:
    """A single page of a prefix listing."""

    objects: List[ObjectInfo] = field(default_factory=list)
    next_token: Optional[str] = None


class ObjectStore(Protocol):
    """Minimal blob store capability used by the activity log."""

    async def put(self, key: str, body: bytes, content_type: str) -> None: ...

    async def list_page(
        self, prefix: str, continuation_token: Optional[str] = None
    ) -> ListPage: ...

    async def get(self, key: str) -> bytes: ...


class S3ObjectStore:
    """S3-backed object store."""

    def __init__(
        self,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.bucket = bucket or settings.s3_bucket_name
        self.region = region or settings.aws_region
        self.endpoint_url = endpoint_url or settings.s3_endpoint_url
        self.timeout = timeout or settings.object_store_timeout
        self._session = get_session()
        self._stack: Optional[AsyncExitStack] = None
        self._client: Any = None

    async def start(self) -> None:
        """Open the underlying S3 client."""
        if self._client is not None:
            return
        self._stack = AsyncExitStack()
        self._client = await self._stack.enter_async_context(
            self._session.create_client(
                "s3",
                region_name=self.region,
                endpoint_url=self.endpoint_url,
                config=Config(
                    connect_timeout=self.timeout,
                    read_timeout=self.timeout,
                    retries={"max_attempts": 2},
                ),
            )
        )

    async def close(self) -> None:
        if self._stack is not None:
            await self._stack.aclose()
        self._stack = None
        self._client = None

    async def put(self, key: str, body: bytes, content_type: str) -> None:
        client = await self._get_client()
        try:
            await client.put_object(
                Bucket=self.bucket, Key=key, Body=body, ContentType=content_type
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to write {key}", {"key": key}) from exc

    async def list_page(
        self, prefix: str, continuation_token: Optional[str] = None
    ) -> ListPage:
        client = await self._get_client()
        params: Dict[str, Any] = {"Bucket": self.bucket, "Prefix": prefix}
        if continuation_token:
            params["ContinuationToken"] = continuation_token
        try:
            response = await client.list_objects_v2(**params)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to list {prefix}", {"prefix": prefix}) from exc

        objects = [ObjectInfo(key=item["Key"]) for item in response.get("Contents", [])]
        next_token = (
            response.get("NextContinuationToken")
            if response.get("IsTruncated")
            else None
        )
        return ListPage(objects=objects, next_token=next_token)

    async def get(self, key: str) -> bytes:
        client = await self._get_client()
        try:
            response = await client.get_object(Bucket=self.bucket, Key=key)
            async with response["Body"] as stream:
                return await stream.read()
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to read {key}", {"key": key}) from exc

    async def _get_client(self) -> Any:
        if self._client is None:
            await self.start()
        return self._client
