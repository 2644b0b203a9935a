"""
客人管理路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from folio.database import get_db
from folio.models.ontology import Employee, LoyaltyTier
from folio.models.schemas import GuestUpdate, GuestResponse
from folio.services.guest_service import GuestService
from folio.services.ledger_service import LedgerService
from folio.services.serializers import guest_to_dict
from folio.security.auth import get_current_user, require_front_office
from folio.routers.errors import http_error

router = APIRouter(prefix="/guests", tags=["客人管理"])


@router.get("", response_model=List[GuestResponse])
def list_guests(
    search: Optional[str] = None,
    is_vip: Optional[bool] = None,
    tier: Optional[LoyaltyTier] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取客人列表"""
    service = GuestService(db)
    ledger = LedgerService(db)
    guests = service.get_guests(search, is_vip, tier, limit)
    return [GuestResponse(**guest_to_dict(g, ledger.balance_of(g.id))) for g in guests]


@router.get("/{guest_id}", response_model=GuestResponse)
def get_guest(
    guest_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取客人详情"""
    service = GuestService(db)
    guest = service.get_guest(guest_id)
    if not guest:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="客人不存在")
    return GuestResponse(**guest_to_dict(guest, LedgerService(db).balance_of(guest.id)))


@router.put("/{guest_id}", response_model=GuestResponse)
def update_guest(
    guest_id: int,
    data: GuestUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_office)
):
    """更新客人档案"""
    service = GuestService(db)
    try:
        guest = service.update_guest(guest_id, data, current_user.id)
        return GuestResponse(**guest_to_dict(guest, LedgerService(db).balance_of(guest.id)))
    except (ValueError, StaleDataError) as e:
        raise http_error(e)
