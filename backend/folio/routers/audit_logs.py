"""
审计日志路由
"""
from typing import List, Optional
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from folio.database import get_db
from folio.models.ontology import Employee, SystemLog
from folio.models.schemas import AuditLogResponse
from folio.services.audit_service import AuditService
from folio.security.auth import get_current_user, require_manager

router = APIRouter(prefix="/audit-logs", tags=["审计日志"])


def _to_response(log: SystemLog) -> AuditLogResponse:
    return AuditLogResponse(
        id=log.id,
        operator_id=log.operator_id,
        operator_name=log.operator.name if log.operator else None,
        action=log.action,
        entity_type=log.entity_type,
        entity_id=log.entity_id,
        old_value=log.old_value,
        new_value=log.new_value,
        details=log.details,
        created_at=log.created_at
    )


@router.get("", response_model=List[AuditLogResponse])
def list_logs(
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    operator_id: Optional[int] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """获取审计日志列表"""
    service = AuditService(db)

    # 转换日期字符串
    try:
        start = datetime.fromisoformat(start_date).date() if start_date else None
        end = datetime.fromisoformat(end_date).date() if end_date else None
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="日期格式错误")

    logs = service.get_logs(
        action=action,
        entity_type=entity_type,
        operator_id=operator_id,
        start_date=start,
        end_date=end,
        limit=limit
    )
    return [_to_response(log) for log in logs]


@router.get("/entity/{entity_type}/{entity_id}", response_model=List[AuditLogResponse])
def get_entity_logs(
    entity_type: str,
    entity_id: int,
    limit: int = 50,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取特定实体的操作日志"""
    service = AuditService(db)
    return [_to_response(log) for log in service.get_logs_by_entity(entity_type, entity_id, limit)]


@router.get("/{log_id}", response_model=AuditLogResponse)
def get_log(
    log_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """获取单条日志详情"""
    service = AuditService(db)
    log = service.get_log(log_id)
    if not log:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="日志不存在")
    return _to_response(log)
