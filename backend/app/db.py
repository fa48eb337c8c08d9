import logging

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING

from app import config

logger = logging.getLogger(__name__)

# MongoDB Setup
client = None
db = None


def init_db(app):
    global client, db
    client = AsyncIOMotorClient(config.MONGODB_URI)
    db = client.get_default_database()
    app.state.db = db


def get_db():
    return db


async def ensure_indexes(database=None):
    """Create the indexes the scheduling core relies on.

    The partial unique index on pending cancellation requests is the
    authoritative guard against two open releases of the same shift.
    """
    database = database if database is not None else get_db()

    await database["shift_cancellation_requests"].create_index(
        "schedule_id",
        unique=True,
        partialFilterExpression={"status": "pending"},
        name="one_pending_cancellation_per_schedule",
    )
    await database["shift_cancellation_requests"].create_index(
        [("status", ASCENDING), ("expires_at", ASCENDING)],
        name="status_expires_at",
    )
    await database["time_slot_limits"].create_index(
        "time_slot_id", unique=True, name="one_limit_per_time_slot"
    )
    await database["time_slots"].create_index(
        [("day_of_week", ASCENDING), ("start_time", ASCENDING)],
        name="day_start",
    )
    await database["schedules"].create_index(
        [("employee_id", ASCENDING), ("date", ASCENDING), ("status", ASCENDING)],
        name="employee_date_status",
    )
    await database["schedules"].create_index(
        [("time_slot_id", ASCENDING), ("date", ASCENDING), ("status", ASCENDING)],
        name="slot_date_status",
    )
    await database["notifications"].create_index(
        [("userId", ASCENDING), ("createdAt", DESCENDING)],
        name="user_created",
    )
    await database["notifications"].create_index(
        "payload.cancellation_request_id", name="cancellation_tag"
    )
    logger.info("Database indexes ensured")


def serialize_doc(doc):
    """Copy of a Mongo document with ``_id`` exposed as a string ``id``."""
    if doc is None:
        return None
    out = dict(doc)
    if "_id" in out:
        out["id"] = str(out.pop("_id"))
    for key, value in out.items():
        if isinstance(value, ObjectId):
            out[key] = str(value)
    return out


def to_object_id(value):
    """ObjectId for a string id, or None when it is not a valid one."""
    if isinstance(value, ObjectId):
        return value
    if value is None or not ObjectId.is_valid(str(value)):
        return None
    return ObjectId(str(value))
