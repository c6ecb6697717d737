"""Manage router - endpoints behind the link sent in the confirmation SMS"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...database import get_db
from ...services.sms_service import SmsService, get_sms_service
from .schemas import BookingDetail, BookingDetailResponse, ManageResolution
from .service import ManageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/manage", tags=["Manage"])


def get_manage_service(
    db: Session = Depends(get_db), sms_service: SmsService = Depends(get_sms_service)
) -> ManageService:
    """Dependency injection for ManageService"""
    return ManageService(db, sms_service)


def _rejection(resolution: ManageResolution) -> JSONResponse:
    # Same flat {success, message} body as every other endpoint
    return JSONResponse(
        status_code=resolution.status_code, content=resolution.model_dump(exclude_none=True)
    )


@router.get("/{token}", response_model=BookingDetailResponse)
async def get_booking(token: str, service: ManageService = Depends(get_manage_service)):
    resolution = service.resolve_manage_token(token)
    if not resolution.success:
        return _rejection(resolution)
    return BookingDetailResponse(booking=BookingDetail.from_booking(resolution.context.booking))


@router.post("/{token}/cancel")
async def cancel_booking(token: str, service: ManageService = Depends(get_manage_service)):
    resolution = service.resolve_manage_token(token)
    if not resolution.success:
        return _rejection(resolution)

    context = resolution.context
    result = await service.cancel_booking(context.booking.id, context.manage_token.id)
    return JSONResponse(status_code=result.status_code, content=result.model_dump(exclude_none=True))
