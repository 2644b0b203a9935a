"""
房间服务 - 本体操作层
管理 Room 和 RoomType 对象
房态规则：
- 只有入住能把房间设为 OCCUPIED，只有退房 / 换房能释放 OCCUPIED
- 维修中（OUT_OF_ORDER）的房间只有经理可以修改状态
- guest_id 非空 当且仅当 状态为 OCCUPIED
支持事件发布：房间状态变更时发布事件
"""
from typing import List, Optional, Callable
from datetime import datetime
from decimal import Decimal
import logging
from sqlalchemy import func
from sqlalchemy.orm import Session
from folio.config import settings
from folio.models.ontology import (
    Room, RoomType, RoomTypeRate, RoomStatus, Reservation, Guest
)
from folio.models.schemas import RoomCreate, RoomUpdate, RoomTypeCreate, RoomTypeUpdate
from folio.models.events import EventType, RoomStatusChangedData
from folio.services.event_bus import event_bus, Event
from folio.services.audit_service import AuditService
from folio.services.errors import NotFoundError, PermissionDeniedError
from folio.services.locks import lock_registry
from folio.services.rate_policy import to_minor

logger = logging.getLogger(__name__)


class RoomService:
    """房间服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish

    def _commit(self, **audit) -> int:
        """追加审计、递增版本号并提交，返回新版本号"""
        from folio.services.state_service import StateService

        AuditService(self.db).create_log(**audit)
        version = StateService(self.db).bump()
        self.db.commit()
        return version

    @staticmethod
    def _check_currency(currency: str) -> str:
        currency = currency.upper()
        if currency not in settings.SUPPORTED_CURRENCIES:
            raise ValueError(f"不支持的币种: {currency}")
        return currency

    # ============== 房型操作 ==============

    def get_room_types(self) -> List[RoomType]:
        """获取所有房型"""
        return self.db.query(RoomType).order_by(RoomType.id).all()

    def get_room_type(self, room_type_id: int) -> Optional[RoomType]:
        """获取单个房型"""
        return self.db.query(RoomType).filter(RoomType.id == room_type_id).first()

    def get_room_type_by_name(self, name: str) -> Optional[RoomType]:
        """根据名称获取房型（不区分大小写）"""
        return self.db.query(RoomType).filter(
            func.lower(RoomType.name) == name.strip().lower()
        ).first()

    def create_room_type(self, data: RoomTypeCreate, operator_id: int = None) -> RoomType:
        """创建房型，可同时设置分币种价格"""
        name = data.name.strip()
        if self.get_room_type_by_name(name):
            raise ValueError(f"房型名称 '{name}' 已存在")

        rates = {}
        for item in data.rates:
            rates[self._check_currency(item.currency)] = to_minor(item.rate)

        with lock_registry.hold():
            try:
                room_type = RoomType(
                    name=name,
                    description=data.description,
                    max_occupancy=data.max_occupancy
                )
                room_type.rates = [
                    RoomTypeRate(currency=currency, rate_minor=rate_minor)
                    for currency, rate_minor in rates.items()
                ]
                self.db.add(room_type)
                self.db.flush()
                self._commit(
                    action="create_room_type",
                    entity_type="room_type",
                    entity_id=room_type.id,
                    new_value={"name": name, "rates": rates},
                    operator_id=operator_id
                )
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(room_type)
        return room_type

    def update_room_type(self, room_type_id: int, data: RoomTypeUpdate,
                         operator_id: int = None) -> RoomType:
        """更新房型"""
        room_type = self.get_room_type(room_type_id)
        if not room_type:
            raise NotFoundError("房型不存在")

        update_data = data.model_dump(exclude_unset=True)
        if update_data.get('name'):
            update_data['name'] = update_data['name'].strip()
            existing = self.get_room_type_by_name(update_data['name'])
            if existing and existing.id != room_type_id:
                raise ValueError(f"房型名称 '{update_data['name']}' 已存在")

        with lock_registry.hold():
            try:
                for key, value in update_data.items():
                    if value is not None:
                        setattr(room_type, key, value)
                self._commit(
                    action="update_room_type",
                    entity_type="room_type",
                    entity_id=room_type.id,
                    new_value=update_data,
                    operator_id=operator_id
                )
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(room_type)
        return room_type

    def update_room_type_rate(self, room_type_id: int, currency: str, rate: Decimal,
                              operator_id: int = None) -> RoomType:
        """设置房型某币种价格（已有房间的房价不受影响）"""
        room_type = self.get_room_type(room_type_id)
        if not room_type:
            raise NotFoundError("房型不存在")
        currency = self._check_currency(currency)
        if rate < 0:
            raise ValueError("房价不能为负数")
        rate_minor = to_minor(rate)

        with lock_registry.hold():
            try:
                old_rate = room_type.rate_for(currency)
                existing = next((r for r in room_type.rates if r.currency == currency), None)
                if existing:
                    existing.rate_minor = rate_minor
                else:
                    room_type.rates.append(RoomTypeRate(currency=currency, rate_minor=rate_minor))
                self._commit(
                    action="update_room_type_rate",
                    entity_type="room_type",
                    entity_id=room_type.id,
                    old_value={"currency": currency, "rate_minor": old_rate},
                    new_value={"currency": currency, "rate_minor": rate_minor},
                    operator_id=operator_id
                )
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(room_type)
        return room_type

    def delete_room_type(self, room_type_id: int, cascade: bool = False,
                         operator_id: int = None) -> bool:
        """
        删除房型
        - 有预订引用时拒绝
        - 有房间时默认拒绝；cascade=True 时连同房间一起删除，
          但其中任何房间入住中或被预订引用则整体拒绝
        """
        room_type = self.get_room_type(room_type_id)
        if not room_type:
            raise NotFoundError("房型不存在")

        reservation_count = self.db.query(Reservation).filter(
            Reservation.room_type_id == room_type_id
        ).count()
        if reservation_count > 0:
            raise ValueError(f"该房型有 {reservation_count} 条预订记录，无法删除")

        rooms = self.db.query(Room).filter(Room.room_type_id == room_type_id).all()
        if rooms and not cascade:
            raise ValueError(f"该房型下有 {len(rooms)} 间房间，无法删除")

        with lock_registry.hold(room_ids=[r.id for r in rooms]):
            try:
                for room in rooms:
                    self._check_room_deletable(room)
                room_numbers = [r.room_number for r in rooms]
                for room in rooms:
                    self.db.delete(room)
                self.db.flush()
                self.db.expire(room_type, ['rooms'])
                self.db.delete(room_type)
                self._commit(
                    action="delete_room_type",
                    entity_type="room_type",
                    entity_id=room_type_id,
                    old_value={"name": room_type.name, "rooms": room_numbers},
                    operator_id=operator_id
                )
            except Exception:
                self.db.rollback()
                raise
        logger.info(f"Room type {room_type_id} deleted (cascade={cascade})")
        return True

    # ============== 房间操作 ==============

    def get_rooms(self, floor: Optional[int] = None, room_type_id: Optional[int] = None,
                  status: Optional[RoomStatus] = None, is_active: Optional[bool] = None) -> List[Room]:
        """获取房间列表"""
        query = self.db.query(Room)

        if floor is not None:
            query = query.filter(Room.floor == floor)
        if room_type_id is not None:
            query = query.filter(Room.room_type_id == room_type_id)
        if status is not None:
            query = query.filter(Room.status == status)
        if is_active is not None:
            query = query.filter(Room.is_active == is_active)

        return query.order_by(Room.floor, Room.room_number).all()

    def get_room(self, room_id: int) -> Optional[Room]:
        """获取单个房间"""
        return self.db.query(Room).filter(Room.id == room_id).first()

    def get_room_by_number(self, room_number: str) -> Optional[Room]:
        """根据房间号获取房间"""
        return self.db.query(Room).filter(Room.room_number == room_number).first()

    def get_vacant_rooms(self, room_type_id: Optional[int] = None) -> List[Room]:
        """获取空闲可售房间"""
        return self.get_rooms(room_type_id=room_type_id, status=RoomStatus.VACANT, is_active=True)

    def create_room(self, data: RoomCreate, operator_id: int = None) -> Room:
        """创建房间；未指定房价时取房型的基础币种价格"""
        room_number = data.room_number.strip()
        if self.get_room_by_number(room_number):
            raise ValueError(f"房间号 '{room_number}' 已存在")

        room_type = self.get_room_type(data.room_type_id)
        if not room_type:
            raise NotFoundError("房型不存在")

        rate_minor = (
            to_minor(data.rate) if data.rate is not None
            else room_type.rate_for(settings.BASE_CURRENCY)
        )

        with lock_registry.hold():
            try:
                room = Room(
                    room_number=room_number,
                    floor=data.floor,
                    room_type_id=room_type.id,
                    rate_minor=rate_minor,
                    status=RoomStatus.VACANT
                )
                self.db.add(room)
                self.db.flush()
                self._commit(
                    action="create_room",
                    entity_type="room",
                    entity_id=room.id,
                    new_value={"room_number": room_number, "room_type": room_type.name,
                               "rate_minor": rate_minor},
                    operator_id=operator_id
                )
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(room)
        return room

    def update_room(self, room_id: int, data: RoomUpdate, operator_id: int = None) -> Room:
        """更新房间基础信息（不含房态）"""
        update_data = data.model_dump(exclude_unset=True)

        with lock_registry.hold(room_ids=[room_id]):
            try:
                room = self.get_room(room_id)
                if not room:
                    raise NotFoundError("房间不存在")

                if update_data.get('room_number'):
                    update_data['room_number'] = update_data['room_number'].strip()
                    existing = self.get_room_by_number(update_data['room_number'])
                    if existing and existing.id != room_id:
                        raise ValueError(f"房间号 '{update_data['room_number']}' 已存在")
                if update_data.get('room_type_id') is not None:
                    if not self.get_room_type(update_data['room_type_id']):
                        raise NotFoundError("房型不存在")
                if update_data.get('is_active') is False and room.status == RoomStatus.OCCUPIED:
                    raise ValueError("入住中的房间不能停用")

                rate = update_data.pop('rate', None)
                if rate is not None:
                    room.rate_minor = to_minor(rate)
                for key, value in update_data.items():
                    if value is not None:
                        setattr(room, key, value)

                self._commit(
                    action="update_room",
                    entity_type="room",
                    entity_id=room.id,
                    new_value={**update_data, "rate_minor": room.rate_minor},
                    operator_id=operator_id
                )
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(room)
        return room

    def _check_room_deletable(self, room: Room) -> None:
        if room.status == RoomStatus.OCCUPIED:
            raise ValueError(f"房间 {room.room_number} 入住中，无法删除")
        referenced = self.db.query(Reservation).filter(
            Reservation.assigned_room_id == room.id
        ).count()
        if referenced:
            raise ValueError(f"房间 {room.room_number} 有预订记录，无法删除，请停用")

    def delete_room(self, room_id: int, operator_id: int = None) -> bool:
        """删除房间"""
        with lock_registry.hold(room_ids=[room_id]):
            try:
                room = self.get_room(room_id)
                if not room:
                    raise NotFoundError("房间不存在")
                self._check_room_deletable(room)

                room_number = room.room_number
                self.db.delete(room)
                self._commit(
                    action="delete_room",
                    entity_type="room",
                    entity_id=room_id,
                    old_value={"room_number": room_number},
                    operator_id=operator_id
                )
            except Exception:
                self.db.rollback()
                raise
        return True

    def update_room_status(self, room_id: int, status: RoomStatus,
                           guest_id: Optional[int] = None, notes: Optional[str] = None,
                           allow_out_of_order: bool = False, operator_id: int = None) -> Room:
        """
        员工更新房态（客房清洁、维修等）
        不能设为入住，不能修改入住中的房间，不能关联客人
        """
        status = RoomStatus(status)

        with lock_registry.hold(room_ids=[room_id]):
            try:
                room = self.db.query(Room).populate_existing().filter(Room.id == room_id).first()
                if not room:
                    raise NotFoundError("房间不存在")

                if status == RoomStatus.OCCUPIED:
                    raise ValueError("只能通过办理入住将房间设为入住状态")
                if room.status == RoomStatus.OCCUPIED:
                    raise ValueError("入住中的房间不能手动更改状态，请通过退房操作")
                if guest_id is not None:
                    raise ValueError("非入住状态的房间不能关联客人")
                if room.status == RoomStatus.OUT_OF_ORDER and not allow_out_of_order:
                    raise PermissionDeniedError("维修中的房间只有经理可以修改状态")

                old_status = room.status
                room.status = status
                if notes is not None:
                    room.status_notes = notes

                version = self._commit(
                    action="update_room_status",
                    entity_type="room",
                    entity_id=room.id,
                    old_value={"status": old_status.value},
                    new_value={"status": status.value, "notes": notes},
                    operator_id=operator_id
                )
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(room)

        # 发布房间状态变更事件
        if old_status != status:
            self._publish_event(Event(
                event_type=EventType.ROOM_STATUS_CHANGED,
                timestamp=datetime.now(),
                data=RoomStatusChangedData(
                    state_version=version,
                    room_id=room.id,
                    room_number=room.room_number,
                    old_status=old_status.value,
                    new_status=status.value,
                    changed_by=operator_id,
                    reason=notes or ""
                ).to_dict(),
                source="room_service"
            ))

        return room

    # ============== 编排专用（不提交） ==============

    def occupy(self, room: Room, guest: Guest) -> RoomStatus:
        """空闲 -> 入住，并记录住客；返回原状态"""
        if room.status != RoomStatus.VACANT:
            raise ValueError(f"房间 {room.room_number} 状态为 {room.status.value}，无法入住")
        old_status = room.status
        room.status = RoomStatus.OCCUPIED
        room.guest = guest
        guest.room_number = room.room_number
        guest.room_type = room.room_type.name if room.room_type else None
        return old_status

    def vacate(self, room: Room) -> RoomStatus:
        """入住 -> 待清洁，并清除住客；返回原状态"""
        if room.status != RoomStatus.OCCUPIED:
            raise ValueError(f"房间 {room.room_number} 不是入住状态")
        old_status = room.status
        room.status = RoomStatus.DIRTY
        room.guest = None
        return old_status

    # ============== 统计 ==============

    def get_room_status_summary(self) -> dict:
        """获取房态统计"""
        rooms = self.get_rooms(is_active=True)
        summary = {'total': len(rooms)}
        for status in RoomStatus:
            summary[status.value] = 0
        for room in rooms:
            summary[room.status.value] += 1
        return summary
