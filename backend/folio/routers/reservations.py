"""
预订管理路由
"""
from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from folio.database import get_db
from folio.models.ontology import Employee, ReservationStatus
from folio.models.schemas import (
    ReservationCreate, ReservationUpdate, ReservationConfirm, ReservationAssign,
    ReservationCancel, ReservationResponse
)
from folio.services.reservation_service import ReservationService
from folio.services.serializers import reservation_to_dict
from folio.security.auth import get_current_user, require_front_office
from folio.routers.errors import http_error

router = APIRouter(prefix="/reservations", tags=["预订管理"])


@router.get("", response_model=List[ReservationResponse])
def list_reservations(
    status: Optional[ReservationStatus] = None,
    check_in_date: Optional[date] = None,
    keyword: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取预订列表"""
    service = ReservationService(db)
    reservations = service.get_reservations(status, check_in_date, keyword)
    return [ReservationResponse(**reservation_to_dict(r)) for r in reservations]


@router.post("", response_model=ReservationResponse)
def create_reservation(
    data: ReservationCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_office)
):
    """创建预订"""
    service = ReservationService(db)
    try:
        reservation = service.create_reservation(data, current_user.id)
        return ReservationResponse(**reservation_to_dict(reservation))
    except ValueError as e:
        raise http_error(e)


@router.get("/{reservation_id}", response_model=ReservationResponse)
def get_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取预订详情"""
    service = ReservationService(db)
    reservation = service.get_reservation(reservation_id)
    if not reservation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="预订不存在")
    return ReservationResponse(**reservation_to_dict(reservation))


@router.put("/{reservation_id}", response_model=ReservationResponse)
def update_reservation(
    reservation_id: int,
    data: ReservationUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_office)
):
    """修改预订"""
    service = ReservationService(db)
    try:
        reservation = service.update_reservation(reservation_id, data, current_user.id)
        return ReservationResponse(**reservation_to_dict(reservation))
    except (ValueError, StaleDataError) as e:
        raise http_error(e)


@router.post("/{reservation_id}/confirm", response_model=ReservationResponse)
def confirm_reservation(
    reservation_id: int,
    data: Optional[ReservationConfirm] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_office)
):
    """确认预订"""
    service = ReservationService(db)
    try:
        reservation = service.confirm_reservation(
            reservation_id, data.room_id if data else None, current_user.id
        )
        return ReservationResponse(**reservation_to_dict(reservation))
    except (ValueError, StaleDataError) as e:
        raise http_error(e)


@router.post("/{reservation_id}/assign", response_model=ReservationResponse)
def assign_room(
    reservation_id: int,
    data: ReservationAssign,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_office)
):
    """分配房间"""
    service = ReservationService(db)
    try:
        reservation = service.assign_room(reservation_id, data.room_id, current_user.id)
        return ReservationResponse(**reservation_to_dict(reservation))
    except (ValueError, StaleDataError) as e:
        raise http_error(e)


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
def cancel_reservation(
    reservation_id: int,
    data: Optional[ReservationCancel] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_office)
):
    """取消预订"""
    service = ReservationService(db)
    try:
        reservation = service.cancel_reservation(
            reservation_id, data.cancel_reason if data else None, current_user.id
        )
        return ReservationResponse(**reservation_to_dict(reservation))
    except (ValueError, StaleDataError) as e:
        raise http_error(e)


@router.post("/{reservation_id}/no-show", response_model=ReservationResponse)
def mark_no_show(
    reservation_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_office)
):
    """标记未到"""
    service = ReservationService(db)
    try:
        reservation = service.mark_no_show(reservation_id, current_user.id)
        return ReservationResponse(**reservation_to_dict(reservation))
    except (ValueError, StaleDataError) as e:
        raise http_error(e)
