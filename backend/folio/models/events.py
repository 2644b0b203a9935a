"""
领域事件定义 (Domain Events)
账务子系统在事务提交后发布的业务事件
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, Dict, Any


class EventType(str, Enum):
    """事件类型枚举"""
    # 房间相关
    ROOM_STATUS_CHANGED = "room.status_changed"

    # 入住相关
    GUEST_CHECKED_IN = "guest.checked_in"
    GUEST_CHECKED_OUT = "guest.checked_out"
    GUEST_MOVED = "guest.moved"

    # 预订相关
    RESERVATION_CREATED = "reservation.created"
    RESERVATION_CONFIRMED = "reservation.confirmed"
    RESERVATION_CANCELLED = "reservation.cancelled"
    RESERVATION_NO_SHOW = "reservation.no_show"

    # 账目相关
    TRANSACTION_POSTED = "ledger.transaction_posted"
    TRANSACTION_REVERSED = "ledger.transaction_reversed"

    # 积分相关
    POINTS_EARNED = "loyalty.points_earned"
    POINTS_REDEEMED = "loyalty.points_redeemed"

    # 系统相关
    TAX_SETTINGS_UPDATED = "settings.tax_updated"
    STATE_CLEARED = "state.cleared"


@dataclass
class BaseEventData:
    """事件数据基类"""
    timestamp: datetime = field(default_factory=datetime.now)
    state_version: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        result = asdict(self)
        # 处理 datetime 序列化
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
        return result


@dataclass
class RoomStatusChangedData(BaseEventData):
    """房间状态变更事件数据"""
    room_id: int = 0
    room_number: str = ""
    old_status: str = ""
    new_status: str = ""
    guest_id: Optional[int] = None
    changed_by: Optional[int] = None
    reason: str = ""


@dataclass
class GuestCheckedInData(BaseEventData):
    """客人入住事件数据"""
    guest_id: int = 0
    guest_name: str = ""
    room_id: int = 0
    room_number: str = ""
    reservation_id: Optional[int] = None
    posted_transaction_ids: list = field(default_factory=list)
    balance_minor: int = 0
    operator_id: Optional[int] = None


@dataclass
class GuestCheckedOutData(BaseEventData):
    """客人退房事件数据"""
    guest_id: int = 0
    guest_name: str = ""
    room_id: int = 0
    room_number: str = ""
    reservation_id: Optional[int] = None
    payment_minor: int = 0
    balance_minor: int = 0
    operator_id: Optional[int] = None


@dataclass
class GuestMovedData(BaseEventData):
    """换房事件数据"""
    guest_id: int = 0
    guest_name: str = ""
    old_room_id: int = 0
    old_room_number: str = ""
    new_room_id: int = 0
    new_room_number: str = ""
    operator_id: Optional[int] = None


@dataclass
class ReservationChangedData(BaseEventData):
    """预订状态事件数据"""
    reservation_id: int = 0
    reservation_no: str = ""
    guest_name: str = ""
    status: str = ""
    room_assigned: Optional[str] = None
    reason: str = ""


@dataclass
class TransactionData(BaseEventData):
    """账目入账 / 冲销事件数据"""
    transaction_id: int = 0
    guest_id: int = 0
    description: str = ""
    amount_minor: int = 0
    entry_type: str = ""
    operator_id: Optional[int] = None


@dataclass
class LoyaltyData(BaseEventData):
    """积分变动事件数据"""
    guest_id: int = 0
    points: int = 0
    balance: int = 0
    tier: str = ""
    description: str = ""


@dataclass
class StateClearedData(BaseEventData):
    """清空数据事件数据"""
    operator_id: Optional[int] = None
    guests_removed: int = 0
    transactions_removed: int = 0
    reservations_removed: int = 0


@dataclass
class TaxSettingsChangedData(BaseEventData):
    """税费设置变更事件数据"""
    action: str = ""
    is_enabled: bool = False
    component_id: Optional[int] = None
    component_name: str = ""
    operator_id: Optional[int] = None


# 事件数据类型映射
EVENT_DATA_CLASSES = {
    EventType.ROOM_STATUS_CHANGED: RoomStatusChangedData,
    EventType.GUEST_CHECKED_IN: GuestCheckedInData,
    EventType.GUEST_CHECKED_OUT: GuestCheckedOutData,
    EventType.GUEST_MOVED: GuestMovedData,
    EventType.RESERVATION_CREATED: ReservationChangedData,
    EventType.RESERVATION_CONFIRMED: ReservationChangedData,
    EventType.RESERVATION_CANCELLED: ReservationChangedData,
    EventType.RESERVATION_NO_SHOW: ReservationChangedData,
    EventType.TRANSACTION_POSTED: TransactionData,
    EventType.TRANSACTION_REVERSED: TransactionData,
    EventType.POINTS_EARNED: LoyaltyData,
    EventType.POINTS_REDEEMED: LoyaltyData,
    EventType.TAX_SETTINGS_UPDATED: TaxSettingsChangedData,
    EventType.STATE_CLEARED: StateClearedData,
}
