"""
积分服务 - 本体操作层
管理 LoyaltyTransaction 对象与客人积分余额
- 余额等于积分流水之和，且永远 >= 0
- 等级按累计获得积分计算，兑换不降级
- 兑换在客人锁内重新读取余额后判断
"""
from typing import Callable, List
from datetime import datetime
from sqlalchemy import func
from sqlalchemy.orm import Session
from folio.config import settings
from folio.models.ontology import Guest, LoyaltyTransaction, LoyaltyTier
from folio.models.events import EventType, LoyaltyData
from folio.services.event_bus import event_bus, Event
from folio.services.audit_service import AuditService
from folio.services.errors import NotFoundError
from folio.services.locks import lock_registry


def derive_tier(lifetime_points: int) -> LoyaltyTier:
    """根据累计获得积分计算等级"""
    if lifetime_points >= settings.LOYALTY_PLATINUM_THRESHOLD:
        return LoyaltyTier.PLATINUM
    if lifetime_points >= settings.LOYALTY_GOLD_THRESHOLD:
        return LoyaltyTier.GOLD
    if lifetime_points >= settings.LOYALTY_SILVER_THRESHOLD:
        return LoyaltyTier.SILVER
    return LoyaltyTier.BRONZE


def _is_positive_int(points) -> bool:
    return isinstance(points, int) and not isinstance(points, bool) and points > 0


class LoyaltyService:
    """积分服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        self._publish_event = event_publisher or event_bus.publish

    def _fresh_guest(self, guest_id: int) -> Guest:
        return self.db.query(Guest).populate_existing().filter(Guest.id == guest_id).first()

    def _result(self, success: bool, message: str, guest_id: int, guest: Guest = None) -> dict:
        return {
            "success": success,
            "message": message,
            "guest_id": guest_id,
            "points_balance": guest.loyalty_points if guest else None,
            "loyalty_tier": guest.loyalty_tier if guest else None,
        }

    def earn_points(self, guest_id: int, points: int, description: str = "",
                    operator_id: int = None) -> Guest:
        """获得积分"""
        if not _is_positive_int(points):
            raise ValueError("获得积分必须是正整数")

        from folio.services.state_service import StateService

        with lock_registry.hold(guest_ids=[guest_id]):
            try:
                guest = self._fresh_guest(guest_id)
                if not guest:
                    raise NotFoundError("客人不存在")

                old_tier = guest.loyalty_tier
                self.db.add(LoyaltyTransaction(
                    guest_id=guest.id,
                    points=points,
                    description=description or "获得积分"
                ))
                guest.loyalty_points += points
                guest.lifetime_points += points
                guest.loyalty_tier = derive_tier(guest.lifetime_points)

                AuditService(self.db).create_log(
                    action="earn_points",
                    entity_type="guest",
                    entity_id=guest.id,
                    old_value={"tier": old_tier.value},
                    new_value={
                        "points": points,
                        "balance": guest.loyalty_points,
                        "tier": guest.loyalty_tier.value,
                    },
                    operator_id=operator_id
                )
                version = StateService(self.db).bump()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            self.db.refresh(guest)

        self._publish_event(Event(
            event_type=EventType.POINTS_EARNED,
            timestamp=datetime.now(),
            data=LoyaltyData(
                state_version=version,
                guest_id=guest.id,
                points=points,
                balance=guest.loyalty_points,
                tier=guest.loyalty_tier.value,
                description=description
            ).to_dict(),
            source="loyalty_service"
        ))
        return guest

    def redeem_points(self, guest_id: int, points: int, description: str = "",
                      operator_id: int = None) -> dict:
        """
        兑换积分
        仅当 0 < points <= 余额 时成功；失败不做任何修改，返回 success=False
        """
        if not _is_positive_int(points):
            return self._result(False, "兑换积分必须是正整数", guest_id)

        from folio.services.state_service import StateService

        with lock_registry.hold(guest_ids=[guest_id]):
            try:
                guest = self._fresh_guest(guest_id)
                if not guest:
                    return self._result(False, "客人不存在", guest_id)
                if points > guest.loyalty_points:
                    return self._result(False, "积分不足", guest_id, guest)

                self.db.add(LoyaltyTransaction(
                    guest_id=guest.id,
                    points=-points,
                    description=description or "积分兑换"
                ))
                guest.loyalty_points -= points

                AuditService(self.db).create_log(
                    action="redeem_points",
                    entity_type="guest",
                    entity_id=guest.id,
                    new_value={"points": points, "balance": guest.loyalty_points},
                    operator_id=operator_id
                )
                version = StateService(self.db).bump()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            self.db.refresh(guest)

        self._publish_event(Event(
            event_type=EventType.POINTS_REDEEMED,
            timestamp=datetime.now(),
            data=LoyaltyData(
                state_version=version,
                guest_id=guest.id,
                points=-points,
                balance=guest.loyalty_points,
                tier=guest.loyalty_tier.value,
                description=description
            ).to_dict(),
            source="loyalty_service"
        ))
        return self._result(True, "积分兑换成功", guest_id, guest)

    def get_history(self, guest_id: int) -> List[LoyaltyTransaction]:
        """积分流水（按时间顺序）"""
        if not self.db.query(Guest).filter(Guest.id == guest_id).first():
            raise NotFoundError("客人不存在")
        return self.db.query(LoyaltyTransaction).filter(
            LoyaltyTransaction.guest_id == guest_id
        ).order_by(LoyaltyTransaction.id).all()

    def reconcile(self, guest_id: int) -> bool:
        """核对积分余额是否等于流水之和"""
        guest = self.db.query(Guest).filter(Guest.id == guest_id).first()
        if not guest:
            raise NotFoundError("客人不存在")
        total = self.db.query(func.coalesce(func.sum(LoyaltyTransaction.points), 0)).filter(
            LoyaltyTransaction.guest_id == guest_id
        ).scalar()
        return int(total or 0) == guest.loyalty_points

    def get_stats(self) -> dict:
        """积分统计"""
        guests = self.db.query(Guest).all()
        total_points = sum(g.loyalty_points for g in guests)
        tiers = {tier.value: 0 for tier in LoyaltyTier}
        for g in guests:
            tiers[g.loyalty_tier.value] += 1
        return {
            "total_members": len(guests),
            "total_points": total_points,
            "average_points": total_points // len(guests) if guests else 0,
            "tiers": tiers,
        }
