"""Immutable event envelopes for the activity log."""

import copy
import json
import re
import uuid
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from practice.errors import ValidationError
from practice.services.context import Context

EventType = Literal["run", "ai-help", "save"]

# Fixed width, so string order equals time order
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
TIMESTAMP_LENGTH = len("2000-01-01T00:00:00.000000Z")

RESERVED_FIELDS = ("timestamp", "username", "userId", "taskNumber", "event")
ADVICE_FIELDS = ("estimated_stage", "processing_structure", "advice")

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def format_timestamp(instant: datetime) -> str:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_entry_id() -> str:
    return uuid.uuid4().hex[:12]


def _freeze(value: Any) -> Any:
    """Read-only copy of a JSON-like value: mappings become proxies, lists tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({name: _freeze(item) for name, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {name: _thaw(item) for name, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


class Envelope(BaseModel):
    """One recorded student action.

    ``discriminator`` separates envelopes written in the same instant; it
    is a random id for ``run``/``ai-help`` and the caller's label for
    ``save``.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: str
    user_id: str
    username: str
    task_number: int
    event: EventType
    payload: Mapping[str, Any]
    discriminator: str
    hints_used: Optional[int] = None

    @field_validator("payload", mode="after")
    @classmethod
    def freeze_payload(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return _freeze(value)

    @property
    def code(self) -> Optional[str]:
        return self.payload.get("code")

    def to_record(self) -> Dict[str, Any]:
        """Body persisted in the object store."""
        record: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "username": self.username,
            "userId": self.user_id,
            "taskNumber": self.task_number,
            "event": self.event,
        }
        for name, value in self.payload.items():
            if name not in RESERVED_FIELDS:
                record[name] = _thaw(value)
        if self.hints_used is not None:
            record["hintsUsed"] = self.hints_used
        return record

    def serialize(self) -> bytes:
        return json.dumps(self.to_record(), ensure_ascii=False, indent=2).encode("utf-8")


def sanitize_label(key: str) -> str:
    """Reduce a caller-supplied save key to a single safe path segment."""
    label = key.strip()
    if label.endswith(".json"):
        label = label[: -len(".json")]
    label = _UNSAFE_KEY_CHARS.sub("-", label).strip("-.")
    if not label:
        raise ValidationError("key is required", {"field": "key"})
    return label


class EnvelopeBuilder:
    """Builds envelopes stamped with the current instant."""

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.clock = clock or utcnow
        self.id_factory = id_factory or new_entry_id

    def build_run_envelope(
        self,
        context: Context,
        code: str,
        stdout: Optional[str],
        stderr: Optional[str],
    ) -> Envelope:
        return self._build(
            context,
            "run",
            {"code": code, "stdout": stdout, "stderr": stderr},
        )

    def build_advice_envelope(
        self,
        context: Context,
        code: str,
        advice_result: Dict[str, Any],
        hints_used: Optional[int] = None,
    ) -> Envelope:
        payload: Dict[str, Any] = {"code": code}
        for name in ADVICE_FIELDS:
            payload[name] = copy.deepcopy(advice_result.get(name))
        return self._build(context, "ai-help", payload, hints_used=hints_used)

    def build_save_envelope(
        self,
        context: Context,
        key: Optional[str],
        body: Any,
    ) -> Envelope:
        if not key or body is None or body == "":
            raise ValidationError("key and body are required")
        label = sanitize_label(key)

        if isinstance(body, str):
            try:
                body = json.loads(body)
            except ValueError as exc:
                raise ValidationError("body must be a JSON object") from exc
        if not isinstance(body, dict):
            raise ValidationError("body must be a JSON object")
        if not isinstance(body.get("code"), str):
            raise ValidationError("body.code must be a string", {"field": "body.code"})

        payload = copy.deepcopy(body)
        payload["key"] = key
        return self._build(context, "save", payload, discriminator=label)

    def _build(
        self,
        context: Context,
        event: EventType,
        payload: Dict[str, Any],
        *,
        hints_used: Optional[int] = None,
        discriminator: Optional[str] = None,
    ) -> Envelope:
        return Envelope(
            timestamp=format_timestamp(self.clock()),
            user_id=context.user_id,
            username=context.username,
            task_number=context.task_number,
            event=event,
            payload=payload,
            discriminator=discriminator or self.id_factory(),
            hints_used=hints_used,
        )
