from __future__ import annotations

from typing import Dict

from pydantic import Field

from quonitor.modules.shared.schemas import ApiModel


class SettingsResponse(ApiModel):
    settings: Dict[str, str] = Field(default_factory=dict)


class SettingResponse(ApiModel):
    key: str
    value: str | None = None


class SettingUpdateRequest(ApiModel):
    value: str = Field(max_length=1000)
