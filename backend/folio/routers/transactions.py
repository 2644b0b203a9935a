"""
分类账路由
直接入账与经理冲账
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from folio.database import get_db
from folio.models.ontology import Employee
from folio.models.schemas import TransactionCreate, TransactionResponse
from folio.services.folio_service import FolioService
from folio.services.ledger_service import LedgerService
from folio.services.serializers import transaction_to_dict
from folio.security.auth import get_current_user, require_cashier
from folio.routers.errors import http_error, require_confirm

router = APIRouter(prefix="/transactions", tags=["分类账"])


@router.get("", response_model=List[TransactionResponse])
def list_transactions(
    guest_id: Optional[int] = None,
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取账目列表"""
    service = LedgerService(db)
    return [
        TransactionResponse(**transaction_to_dict(t))
        for t in service.get_transactions(guest_id, limit)
    ]


@router.post("", response_model=TransactionResponse)
def post_transaction(
    data: TransactionCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_cashier)
):
    """直接入账（正数消费，负数付款，不计税）"""
    service = FolioService(db)
    try:
        txn = service.post_transaction(data, current_user.id)
        return TransactionResponse(**transaction_to_dict(txn))
    except (ValueError, StaleDataError) as e:
        raise http_error(e)


@router.delete("/{transaction_id}")
def reverse_transaction(
    transaction_id: int,
    confirm: bool = False,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """冲销账目（经理 / 管理员）"""
    require_confirm(confirm, "冲销账目")
    service = FolioService(db)
    try:
        result = service.reverse_transaction(transaction_id, current_user)
        return {
            "message": "账目已冲销",
            "state_version": result["state_version"],
            "transaction": TransactionResponse(**result["transaction"]),
        }
    except (ValueError, StaleDataError) as e:
        raise http_error(e)
