"""
客人服务 - 本体操作层
管理 Guest 对象的档案信息；积分字段只能经积分服务修改
客人只在办理入住时创建
"""
from typing import List, Optional
from datetime import date
from sqlalchemy import or_
from sqlalchemy.orm import Session
from folio.config import settings
from folio.models.ontology import Guest, LoyaltyTier
from folio.models.schemas import GuestDraft, GuestUpdate
from folio.services.audit_service import AuditService
from folio.services.errors import NotFoundError
from folio.services.locks import lock_registry

# 入住草稿中不属于客人档案的字段
_DRAFT_EXCLUDE = {"guest_id"}


class GuestService:
    """客人服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_guests(self, search: Optional[str] = None, is_vip: Optional[bool] = None,
                   tier: Optional[LoyaltyTier] = None, limit: int = 100) -> List[Guest]:
        """获取客人列表"""
        query = self.db.query(Guest)

        if search:
            query = query.filter(or_(
                Guest.name.contains(search),
                Guest.phone.contains(search),
                Guest.email.contains(search),
                Guest.id_number.contains(search)
            ))
        if is_vip is not None:
            query = query.filter(Guest.is_vip == is_vip)
        if tier is not None:
            query = query.filter(Guest.loyalty_tier == tier)

        return query.order_by(Guest.id.desc()).limit(limit).all()

    def get_guest(self, guest_id: int) -> Optional[Guest]:
        """获取单个客人"""
        return self.db.query(Guest).filter(Guest.id == guest_id).first()

    def build_guest(self, draft: GuestDraft) -> Guest:
        """
        按入住草稿新建客人（不提交）
        新客人积分为 0、等级为铜卡
        """
        fields = draft.model_dump(exclude=_DRAFT_EXCLUDE)
        fields['name'] = fields['name'].strip()
        fields['currency'] = (fields.get('currency') or settings.BASE_CURRENCY).upper()
        fields['arrival_date'] = fields.get('arrival_date') or date.today()
        guest = Guest(
            **fields,
            loyalty_points=0,
            lifetime_points=0,
            loyalty_tier=LoyaltyTier.BRONZE
        )
        self.db.add(guest)
        self.db.flush()
        return guest

    def update_guest(self, guest_id: int, data: GuestUpdate, operator_id: int = None) -> Guest:
        """更新客人档案"""
        update_data = data.model_dump(exclude_unset=True)

        with lock_registry.hold(guest_ids=[guest_id]):
            try:
                guest = self.get_guest(guest_id)
                if not guest:
                    raise NotFoundError("客人不存在")

                old_value = {k: getattr(guest, k) for k in update_data}
                for key, value in update_data.items():
                    if value is not None:
                        setattr(guest, key, value)

                from folio.services.state_service import StateService
                AuditService(self.db).create_log(
                    action="update_guest",
                    entity_type="guest",
                    entity_id=guest.id,
                    old_value=old_value,
                    new_value=update_data,
                    operator_id=operator_id
                )
                StateService(self.db).bump()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(guest)
        return guest
