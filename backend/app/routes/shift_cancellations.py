from fastapi import APIRouter, Depends, status
from app.schemas.shift_cancellation import ShiftCancellationCreate, AdminReassign
from app.services import shift_cancellation_service
from app.utils.auth import get_current_user, require_admin, user_id_of

router = APIRouter()

@router.get("")
async def list_my_requests(current_user: dict = Depends(get_current_user)):
    """Requests the current user opened or fulfilled"""
    requests = await shift_cancellation_service.list_requests_for_user(user_id_of(current_user))
    return {"success": True, "count": len(requests), "data": requests}

@router.get("/active")
async def list_active_requests(current_user: dict = Depends(get_current_user)):
    requests = await shift_cancellation_service.list_active_requests()
    return {"success": True, "count": len(requests), "data": requests}

@router.get("/{request_id}")
async def get_request(request_id: str, current_user: dict = Depends(get_current_user)):
    return {"success": True, "data": await shift_cancellation_service.get_request(request_id)}

@router.post("", status_code=status.HTTP_201_CREATED)
async def request_cancellation(payload: ShiftCancellationCreate, current_user: dict = Depends(get_current_user)):
    request = await shift_cancellation_service.request_cancellation(payload.schedule_id, current_user, payload.reason)
    return {
        "success": True,
        "message": "Shift cancellation request created. Other employees have been notified.",
        "data": request
    }

@router.post("/{request_id}/accept")
async def accept_cancellation(request_id: str, current_user: dict = Depends(get_current_user)):
    request = await shift_cancellation_service.accept_cancellation(request_id, current_user)
    return {"success": True, "message": "You have taken over the shift", "data": request}

@router.post("/{request_id}/admin-reassign")
async def admin_reassign(request_id: str, payload: AdminReassign, current_user: dict = Depends(require_admin)):
    request = await shift_cancellation_service.admin_reassign(request_id, current_user, payload.employee_id)
    return {"success": True, "message": "Shift reassigned", "data": request}

@router.delete("/{request_id}")
async def cancel_request(request_id: str, current_user: dict = Depends(get_current_user)):
    request = await shift_cancellation_service.cancel_cancellation_request(request_id, current_user)
    return {"success": True, "message": "Cancellation request withdrawn", "data": request}
