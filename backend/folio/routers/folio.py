"""
账务编排路由
入住、退房、入账、付款、换房、客人账单
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from folio.database import get_db
from folio.models.ontology import Employee
from folio.models.schemas import (
    CheckInRequest, CheckOutRequest, ChargeRequest, PaymentRequest, MoveGuestRequest,
    FolioSnapshot
)
from folio.services.folio_service import FolioService
from folio.security.auth import get_current_user, require_front_office, require_cashier
from folio.routers.errors import http_error

router = APIRouter(prefix="/folio", tags=["账务"])


@router.post("/check-in", response_model=FolioSnapshot)
def check_in(
    data: CheckInRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_office)
):
    """办理入住"""
    service = FolioService(db)
    try:
        return FolioSnapshot(**service.check_in(data, current_user.id))
    except (ValueError, StaleDataError) as e:
        raise http_error(e)


@router.post("/check-out", response_model=FolioSnapshot)
def check_out(
    data: CheckOutRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_cashier)
):
    """办理退房"""
    service = FolioService(db)
    try:
        return FolioSnapshot(**service.check_out(data, current_user.id))
    except (ValueError, StaleDataError) as e:
        raise http_error(e)


@router.post("/charges", response_model=FolioSnapshot)
def post_charge(
    data: ChargeRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_cashier)
):
    """入账消费（按税费设置附加税费）"""
    service = FolioService(db)
    try:
        return FolioSnapshot(**service.post_charge(
            data.guest_id, data.description, data.amount,
            apply_tax=data.apply_tax, txn_date=data.date, operator_id=current_user.id
        ))
    except (ValueError, StaleDataError) as e:
        raise http_error(e)


@router.post("/payments", response_model=FolioSnapshot)
def post_payment(
    data: PaymentRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_cashier)
):
    """入账付款"""
    service = FolioService(db)
    try:
        return FolioSnapshot(**service.post_payment(
            data.guest_id, data.amount, data.description,
            method=data.method, reference=data.reference, txn_date=data.date,
            operator_id=current_user.id
        ))
    except (ValueError, StaleDataError) as e:
        raise http_error(e)


@router.post("/move", response_model=FolioSnapshot)
def move_guest(
    data: MoveGuestRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_office)
):
    """换房"""
    service = FolioService(db)
    try:
        return FolioSnapshot(**service.move_guest(
            data.guest_id, data.old_room_id, data.new_room_id, current_user.id
        ))
    except (ValueError, StaleDataError) as e:
        raise http_error(e)


@router.get("/guests/{guest_id}", response_model=FolioSnapshot)
def get_guest_folio(
    guest_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """客人账单"""
    service = FolioService(db)
    try:
        return FolioSnapshot(**service.get_guest_folio(guest_id))
    except ValueError as e:
        raise http_error(e)
