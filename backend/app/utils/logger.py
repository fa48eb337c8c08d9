import logging
from app.db import get_db
from app.services.calendar import utcnow
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

async def log_event(
    action: str,
    details: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None
):
    """
    Log an event to both the application logger and the database
    """
    try:
        log_message = f"Action: {action}"
        if user_id:
            log_message += f" | User: {user_id}"
        if details:
            log_message += f" | Details: {details}"

        logger.info(log_message)

        db = get_db()
        log_entry = {
            "action": action,
            "details": details or {},
            "userId": user_id,
            "timestamp": utcnow(),
            "ipAddress": ip_address
        }

        await db["activity_logs"].insert_one(log_entry)

    except Exception as e:
        # Don't let logging errors break the application
        logger.error(f"Failed to log event: {e}")

def log_error(message: str, error: Exception, user_id: Optional[str] = None):
    """
    Log an error with context
    """
    error_message = f"Error: {message} | Exception: {str(error)}"
    if user_id:
        error_message += f" | User: {user_id}"

    logger.error(error_message)

def log_warning(message: str, user_id: Optional[str] = None):
    warning_message = f"Warning: {message}"
    if user_id:
        warning_message += f" | User: {user_id}"

    logger.warning(warning_message)

# Event type constants for consistency
class EventTypes:
    SCHEDULE_REQUESTED = "schedule_requested"
    SCHEDULE_CREATED = "schedule_created"
    SCHEDULE_APPROVED = "schedule_approved"
    SCHEDULE_REJECTED = "schedule_rejected"
    SCHEDULE_UPDATED = "schedule_updated"
    SCHEDULE_DELETED = "schedule_deleted"
    WEEKLY_SCHEDULE_REQUESTED = "weekly_schedule_requested"
    BULK_SCHEDULE_OPERATIONS = "bulk_schedule_operations"

    TIME_SLOT_CREATED = "time_slot_created"
    TIME_SLOT_UPDATED = "time_slot_updated"
    TIME_SLOT_DELETED = "time_slot_deleted"
    TIME_SLOT_LIMIT_SET = "time_slot_limit_set"
    TIME_SLOT_LIMIT_REMOVED = "time_slot_limit_removed"

    CANCELLATION_REQUESTED = "shift_cancellation_requested"
    CANCELLATION_ACCEPTED = "shift_cancellation_accepted"
    CANCELLATION_REASSIGNED = "shift_cancellation_admin_reassigned"
    CANCELLATION_WITHDRAWN = "shift_cancellation_withdrawn"
    CANCELLATION_CLEANUP_COMPLETED = "cancellation_cleanup_completed"
    CANCELLATION_CLEANUP_ERROR = "cancellation_cleanup_error"

    SETTINGS_UPDATED = "settings_updated"

    SYSTEM_ERROR = "system_error"
