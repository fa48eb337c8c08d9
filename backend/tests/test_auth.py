import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from app.utils.auth import create_access_token, get_current_user, is_admin, require_admin


def _bearer(token):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


@pytest.mark.asyncio
async def test_token_resolves_to_the_stored_user(people):
    alice = people["alice"]
    token = create_access_token(str(alice["_id"]), "employee")

    user = await get_current_user(_bearer(token))

    assert user["_id"] == alice["_id"]
    assert not is_admin(user)


@pytest.mark.asyncio
async def test_garbage_token_is_unauthorized(people):
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user(_bearer("not-a-jwt"))
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_inactive_user_is_refused(people, mongo):
    await mongo["users"].update_one({"_id": people["bob"]["_id"]}, {"$set": {"isActive": False}})
    token = create_access_token(str(people["bob"]["_id"]), "employee")

    with pytest.raises(HTTPException) as excinfo:
        await get_current_user(_bearer(token))
    assert excinfo.value.status_code == 403


@pytest.mark.asyncio
async def test_require_admin(people):
    assert require_admin(people["admin"]) is people["admin"]
    with pytest.raises(HTTPException):
        require_admin(people["alice"])
