"""Subscribe/unsubscribe control envelopes."""

from __future__ import annotations

import json
from typing import Dict, Literal, Mapping, Optional, Union

from pydantic import (
    BaseModel,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)

from .exceptions import EnvelopeError

Primitive = Union[StrictBool, StrictInt, StrictFloat, StrictStr, None]
RESERVED_KEYS = frozenset({"method", "topic"})


class ControlEnvelope(BaseModel):
    """Validated control message; ``extra`` is merged into the top level."""

    method: Literal["subscribe", "unsubscribe"]
    topic: StrictStr = Field(min_length=1)
    extra: Dict[str, Primitive] = Field(default_factory=dict)

    @field_validator("extra")
    @classmethod
    def reject_reserved_keys(cls, value: Dict[str, Primitive]) -> Dict[str, Primitive]:
        clash = RESERVED_KEYS.intersection(value)
        if clash:
            raise ValueError(f"extra fields may not override {sorted(clash)}")
        return value

    def to_wire(self) -> str:
        return json.dumps({"method": self.method, "topic": self.topic, **self.extra})


def build_envelope(
    method: str, topic: str, extra: Optional[Mapping[str, object]] = None
) -> ControlEnvelope:
    """Validate and build an envelope, raising :class:`EnvelopeError`."""

    try:
        return ControlEnvelope(method=method, topic=topic, extra=dict(extra or {}))
    except (ValidationError, TypeError, ValueError) as exc:
        raise EnvelopeError(str(exc)) from exc
