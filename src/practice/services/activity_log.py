"""Activity log: append-only envelopes in the object store, and latest-code lookup.

Keys are laid out as::

    {prefix}/{user_id}/task_{task_number}/{timestamp}_{event}_{discriminator}.json

Every file name starts with the envelope's fixed-width UTC timestamp, so
the newest envelope of a partition is found from a listing alone. Ties on
the timestamp go to the lexicographically greatest key.
"""

import json
from typing import List, Optional, Tuple

import structlog

from practice.clients.object_store import ObjectStore
from practice.config import get_settings
from practice.errors import NotFound, ParseError, StorageError
from practice.services.envelopes import TIMESTAMP_LENGTH, Envelope, parse_timestamp

log = structlog.get_logger()

CONTENT_TYPE = "application/json"
NO_SAVED_CODE = "No saved code found"


class ActivityLogStore:
    """Appends envelopes and resolves the latest code per (user, task)."""

    def __init__(self, store: ObjectStore, prefix: Optional[str] = None):
        self.store = store
        self.prefix = (prefix or get_settings().log_prefix).strip("/")

    def partition_prefix(self, user_id: str, task_number: int) -> str:
        return f"{self.prefix}/{user_id}/task_{task_number}/"

    def key_for(self, envelope: Envelope) -> str:
        name = f"{envelope.timestamp}_{envelope.event}_{envelope.discriminator}.json"
        return self.partition_prefix(envelope.user_id, envelope.task_number) + name

    async def append(self, envelope: Envelope) -> str:
        """Write one envelope; raises ``StorageError`` if the store rejects it."""
        key = self.key_for(envelope)
        body = envelope.serialize()
        await self.store.put(key, body, CONTENT_TYPE)
        return key

    async def list_partition(self, user_id: str, task_number: int) -> List[str]:
        """All keys of a partition, following continuation tokens to the end."""
        prefix = self.partition_prefix(user_id, task_number)
        keys: List[str] = []
        seen_tokens = set()
        token: Optional[str] = None
        while True:
            page = await self.store.list_page(prefix, token)
            keys.extend(obj.key for obj in page.objects)
            token = page.next_token
            if not token:
                return keys
            if token in seen_tokens:
                raise StorageError("Object listing repeated a continuation token", {"prefix": prefix})
            seen_tokens.add(token)

    @staticmethod
    def ordering_key(key: str) -> Optional[Tuple[str, str]]:
        """(timestamp, key) for a log key, or None if it carries no timestamp."""
        name = key.rsplit("/", 1)[-1]
        stamp = name[:TIMESTAMP_LENGTH]
        try:
            parse_timestamp(stamp)
        except ValueError:
            return None
        return stamp, key

    def select_latest(self, keys: List[str]) -> Optional[str]:
        candidates = []
        for key in keys:
            ordering = self.ordering_key(key)
            if ordering is None:
                log.warning("activity_log.unordered_key_skipped", key=key)
                continue
            candidates.append(ordering)
        if not candidates:
            return None
        return max(candidates)[1]

    async def resolve_latest(self, user_id: str, task_number: int) -> str:
        """Code of the newest envelope in the partition.

        Raises ``NotFound`` when the partition is empty or the store cannot
        be read, and ``ParseError`` when the newest object is not a JSON
        record with a string ``code``.
        """
        try:
            keys = await self.list_partition(user_id, task_number)
        except StorageError as exc:
            log.error(
                "activity_log.list_failed",
                user_id=user_id,
                task_number=task_number,
                error=exc.message,
            )
            raise NotFound(NO_SAVED_CODE) from exc

        latest = self.select_latest(keys)
        if latest is None:
            raise NotFound(NO_SAVED_CODE)

        try:
            raw = await self.store.get(latest)
        except StorageError as exc:
            log.error("activity_log.get_failed", key=latest, error=exc.message)
            raise NotFound(NO_SAVED_CODE) from exc

        try:
            record = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            log.error("activity_log.corrupt_object", key=latest, reason="invalid json")
            raise ParseError(
                "Saved code could not be read", {"key": latest}, code="LOG_CORRUPT"
            ) from exc

        code = record.get("code") if isinstance(record, dict) else None
        if not isinstance(code, str):
            log.error("activity_log.corrupt_object", key=latest, reason="missing code")
            raise ParseError(
                "Saved code could not be read", {"key": latest}, code="LOG_CORRUPT"
            )
        return code


class BackgroundAppender:
    """Appends off the request path; failures go to the log, never the caller."""

    def __init__(self, log_store: ActivityLogStore):
        self.log_store = log_store
        self.appended = 0
        self.failed = 0

    async def append(self, envelope: Envelope) -> Optional[str]:
        try:
            key = await self.log_store.append(envelope)
        except Exception:
            self.failed += 1
            log.exception(
                "activity_log.append_failed",
                user_id=envelope.user_id,
                task_number=envelope.task_number,
                log_event=envelope.event,
                key=self.log_store.key_for(envelope),
            )
            return None
        self.appended += 1
        log.info("activity_log.appended", key=key, log_event=envelope.event)
        return key
