"""
积分路由
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from folio.database import get_db
from folio.models.ontology import Employee
from folio.models.schemas import (
    LoyaltyRequest, LoyaltyResult, LoyaltyTransactionResponse, LoyaltyStats
)
from folio.services.loyalty_service import LoyaltyService
from folio.security.auth import get_current_user, require_front_office
from folio.routers.errors import http_error

router = APIRouter(prefix="/loyalty", tags=["积分"])


@router.post("/earn", response_model=LoyaltyResult)
def earn_points(
    data: LoyaltyRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_office)
):
    """获得积分"""
    service = LoyaltyService(db)
    try:
        guest = service.earn_points(data.guest_id, data.points, data.description, current_user.id)
        return LoyaltyResult(
            success=True,
            message="积分已添加",
            guest_id=guest.id,
            points_balance=guest.loyalty_points,
            loyalty_tier=guest.loyalty_tier
        )
    except (ValueError, StaleDataError) as e:
        raise http_error(e)


@router.post("/redeem", response_model=LoyaltyResult)
def redeem_points(
    data: LoyaltyRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_office)
):
    """兑换积分；积分不足时 success=false，不修改任何数据"""
    service = LoyaltyService(db)
    try:
        return LoyaltyResult(**service.redeem_points(
            data.guest_id, data.points, data.description, current_user.id
        ))
    except (ValueError, StaleDataError) as e:
        raise http_error(e)


@router.get("/guests/{guest_id}/history", response_model=List[LoyaltyTransactionResponse])
def get_history(
    guest_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """积分流水"""
    service = LoyaltyService(db)
    try:
        return service.get_history(guest_id)
    except ValueError as e:
        raise http_error(e)


@router.get("/stats", response_model=LoyaltyStats)
def get_stats(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """积分统计"""
    return LoyaltyStats(**LoyaltyService(db).get_stats())
