from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from quonitor.dependencies import SettingsContext, get_settings_context
from quonitor.modules.settings.schemas import SettingResponse, SettingsResponse, SettingUpdateRequest

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("", response_model=SettingsResponse)
async def list_settings(
    context: SettingsContext = Depends(get_settings_context),
) -> SettingsResponse:
    return SettingsResponse(settings=await context.service.list_settings())


@router.get("/{key}", response_model=SettingResponse)
async def get_setting(
    key: str,
    context: SettingsContext = Depends(get_settings_context),
) -> SettingResponse:
    return SettingResponse(key=key, value=await context.service.get_setting(key))


@router.put("/{key}", response_model=SettingResponse)
async def update_setting(
    key: str,
    payload: SettingUpdateRequest = Body(...),
    context: SettingsContext = Depends(get_settings_context),
) -> SettingResponse:
    await context.service.set_setting(key, payload.value)
    return SettingResponse(key=key, value=await context.service.get_setting(key))
