import logging
from typing import Any, Dict

from app import config
from app.db import get_db
from app.services.calendar import utcnow
from app.utils.exceptions import ValidationError
from app.utils.logger import log_warning

logger = logging.getLogger(__name__)

SETTINGS_COLLECTION = "system_settings"


def default_settings() -> Dict[str, Any]:
    return {"first_day_of_week": config.DEFAULT_FIRST_DAY_OF_WEEK}


async def get_settings() -> Dict[str, Any]:
    """Return the singleton settings document, falling back to defaults."""
    try:
        doc = await get_db()[SETTINGS_COLLECTION].find_one({})
    except Exception as e:
        log_warning(f"Failed to read system settings, using defaults ({e})")
        return default_settings()

    if not doc:
        return default_settings()

    settings = default_settings()
    first_day = doc.get("first_day_of_week")
    if isinstance(first_day, int) and 0 <= first_day <= 6:
        settings["first_day_of_week"] = first_day
    return settings


async def get_first_day_of_week() -> int:
    return (await get_settings())["first_day_of_week"]


async def update_settings(first_day_of_week) -> Dict[str, Any]:
    if not isinstance(first_day_of_week, int) or isinstance(first_day_of_week, bool) or not 0 <= first_day_of_week <= 6:
        raise ValidationError("first_day_of_week must be an integer between 0 (Sunday) and 6 (Saturday)")

    await get_db()[SETTINGS_COLLECTION].update_one(
        {},
        {"$set": {"first_day_of_week": first_day_of_week, "updated_at": utcnow()}},
        upsert=True,
    )
    logger.info(f"First day of week set to {first_day_of_week}")
    return {"first_day_of_week": first_day_of_week}
