"""
审计服务
写操作在同一事务内追加 SystemLog，由调用方统一提交
"""
import json
from datetime import date, datetime, time
from typing import Any, List, Optional
from sqlalchemy.orm import Session
from folio.models.ontology import SystemLog


def _dump(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


class AuditService:
    """审计日志服务"""

    def __init__(self, db: Session):
        self.db = db

    def create_log(self, action: str, entity_type: Optional[str] = None,
                   entity_id: Optional[int] = None, old_value: Any = None,
                   new_value: Any = None, details: Optional[str] = None,
                   operator_id: Optional[int] = None) -> SystemLog:
        """追加一条审计日志（不提交）"""
        log = SystemLog(
            operator_id=operator_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_value=_dump(old_value),
            new_value=_dump(new_value),
            details=details
        )
        self.db.add(log)
        return log

    def get_logs(self, action: Optional[str] = None, entity_type: Optional[str] = None,
                 operator_id: Optional[int] = None, start_date: Optional[date] = None,
                 end_date: Optional[date] = None, limit: int = 100) -> List[SystemLog]:
        """查询审计日志（最新的在前）"""
        query = self.db.query(SystemLog)
        if action:
            query = query.filter(SystemLog.action == action)
        if entity_type:
            query = query.filter(SystemLog.entity_type == entity_type)
        if operator_id:
            query = query.filter(SystemLog.operator_id == operator_id)
        if start_date:
            query = query.filter(SystemLog.created_at >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(SystemLog.created_at <= datetime.combine(end_date, time.max))
        return query.order_by(SystemLog.id.desc()).limit(limit).all()

    def get_log(self, log_id: int) -> Optional[SystemLog]:
        return self.db.query(SystemLog).filter(SystemLog.id == log_id).first()

    def get_logs_by_entity(self, entity_type: str, entity_id: int,
                           limit: int = 50) -> List[SystemLog]:
        """获取特定实体的操作日志"""
        return self.db.query(SystemLog).filter(
            SystemLog.entity_type == entity_type,
            SystemLog.entity_id == entity_id
        ).order_by(SystemLog.id.desc()).limit(limit).all()
