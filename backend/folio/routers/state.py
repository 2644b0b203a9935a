"""
全量状态路由
快照与清空数据
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from folio.database import get_db
from folio.models.ontology import Employee
from folio.models.schemas import StateSnapshot, ClearResult
from folio.services.folio_service import FolioService
from folio.security.auth import get_current_user
from folio.routers.errors import http_error, require_confirm

router = APIRouter(prefix="/state", tags=["状态"])


@router.get("", response_model=StateSnapshot)
def get_state(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """全量快照（含状态版本号）"""
    return StateSnapshot(**FolioService(db).get_snapshot())


@router.post("/clear", response_model=ClearResult)
def clear_all_data(
    confirm: bool = False,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """清空客人、预订、账目与积分数据（经理 / 管理员）"""
    require_confirm(confirm, "清空数据")
    try:
        return ClearResult(**FolioService(db).clear_all_data(current_user))
    except ValueError as e:
        raise http_error(e)
