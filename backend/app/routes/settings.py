from fastapi import APIRouter, Depends
from app.schemas.settings import SettingsUpdate
from app.services import settings_service
from app.utils.auth import get_current_user, require_admin, user_id_of
from app.utils.logger import log_event, EventTypes

router = APIRouter()

@router.get("")
async def get_settings(current_user: dict = Depends(get_current_user)):
    return {"success": True, "data": await settings_service.get_settings()}

@router.post("")
async def update_settings(payload: SettingsUpdate, current_user: dict = Depends(require_admin)):
    settings = await settings_service.update_settings(payload.first_day_of_week)
    await log_event(EventTypes.SETTINGS_UPDATED, settings, user_id=user_id_of(current_user))
    return {"success": True, "message": "Settings updated successfully", "data": settings}
