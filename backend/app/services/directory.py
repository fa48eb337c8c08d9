"""
Read-only lookups against the user and employee collections.

User and employee records are owned by the account management service;
scheduling only resolves ids and fans notifications out to users.
"""
import logging
from typing import List, Optional

from bson import ObjectId

from app.db import get_db

logger = logging.getLogger(__name__)


def id_query(value) -> dict:
    """Match a document by ``_id`` whether it was stored as ObjectId or string."""
    value = str(value)
    if ObjectId.is_valid(value):
        return {"_id": {"$in": [ObjectId(value), value]}}
    return {"_id": value}


async def get_employee_by_user_id(user_id) -> Optional[dict]:
    return await get_db()["employees"].find_one({"user_id": str(user_id)})


async def get_employee_by_id(employee_id) -> Optional[dict]:
    return await get_db()["employees"].find_one(id_query(employee_id))


async def get_all_users() -> List[dict]:
    users = []
    async for user in get_db()["users"].find({"isActive": {"$ne": False}}, {"name": 1, "email": 1, "role": 1}):
        users.append(user)
    logger.debug("Directory returned %d active users", len(users))
    return users


async def employee_name(employee_id) -> str:
    employee = await get_employee_by_id(employee_id)
    if not employee:
        return "An employee"
    return employee.get("name") or employee.get("email") or "An employee"
