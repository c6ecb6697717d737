"""Hold router - FastAPI endpoints for slot holds"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...database import get_db
from ...services.sms_service import SmsService, get_sms_service
from ..results import OperationResult
from .schemas import HoldCancel, HoldCreate, HoldResult, HoldStatusResponse
from .service import HoldService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/hold", tags=["Holds"])


def get_hold_service(
    db: Session = Depends(get_db), sms_service: SmsService = Depends(get_sms_service)
) -> HoldService:
    """Dependency injection for HoldService"""
    return HoldService(db, sms_service)


@router.post("/create", response_model=HoldResult, response_model_exclude_none=True)
async def create_hold(data: HoldCreate, service: HoldService = Depends(get_hold_service)):
    """Reserve a slot for a few minutes while the customer verifies their phone"""
    result = service.create_hold(
        salon_id=data.salonId,
        service_id=data.serviceId,
        slot_date=data.date,
        slot_time=data.time,
        customer_name=data.customerName,
        customer_phone=data.customerPhone,
    )
    return JSONResponse(status_code=result.status_code, content=result.model_dump(exclude_none=True))


@router.post("/cancel")
async def cancel_hold(data: HoldCancel, service: HoldService = Depends(get_hold_service)):
    result = service.cancel_hold(data.holdId)
    return JSONResponse(status_code=result.status_code, content=result.model_dump(exclude_none=True))


@router.get("/status/{hold_id}", response_model=HoldStatusResponse, response_model_exclude_none=True)
async def get_hold_status(hold_id: str, service: HoldService = Depends(get_hold_service)):
    result = service.get_hold_status(hold_id)
    if isinstance(result, OperationResult):
        return JSONResponse(status_code=result.status_code, content=result.model_dump(exclude_none=True))
    return result
