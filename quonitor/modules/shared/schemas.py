from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("*", when_used="json")
    def serialize_datetime_as_utc(value, _info):
        # Timestamps are stored UTC-naive (see `quonitor/core/utils/time.py:utcnow`); emit them as
        # ISO 8601 with a trailing "Z" so clients can render local time.
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.isoformat() + "Z"
            return value.isoformat().replace("+00:00", "Z")
        return value


class StatusResponse(ApiModel):
    status: str
