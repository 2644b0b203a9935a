"""
预订服务 - 本体操作层
管理 Reservation 对象（预订阶段的聚合根）
状态流转：pending -> confirmed -> checked_in -> checked_out
取消 / 未到只能从 pending 或 confirmed 进入，且为终态
入住、退房两步只能由编排服务推进
"""
from typing import List, Optional, Callable
from datetime import date, datetime
from sqlalchemy import or_
from sqlalchemy.orm import Session
from folio.models.ontology import (
    Reservation, ReservationStatus, RoomType, Room, RoomStatus, Guest
)
from folio.models.schemas import ReservationCreate, ReservationUpdate
from folio.models.events import EventType, ReservationChangedData
from folio.services.event_bus import event_bus, Event
from folio.services.audit_service import AuditService
from folio.services.errors import NotFoundError
from folio.services.locks import lock_registry


# 状态流转表，终态不接受任何变更
ALLOWED_TRANSITIONS = {
    ReservationStatus.PENDING: {
        ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW
    },
    ReservationStatus.CONFIRMED: {
        ReservationStatus.CHECKED_IN, ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW
    },
    ReservationStatus.CHECKED_IN: {ReservationStatus.CHECKED_OUT},
    ReservationStatus.CHECKED_OUT: set(),
    ReservationStatus.CANCELLED: set(),
    ReservationStatus.NO_SHOW: set(),
}

# 占用房间的预订状态
OPEN_STATUSES = (
    ReservationStatus.PENDING, ReservationStatus.CONFIRMED, ReservationStatus.CHECKED_IN
)

# 前台可编辑的状态
EDITABLE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)

_STATUS_EVENTS = {
    ReservationStatus.CONFIRMED: EventType.RESERVATION_CONFIRMED,
    ReservationStatus.CANCELLED: EventType.RESERVATION_CANCELLED,
    ReservationStatus.NO_SHOW: EventType.RESERVATION_NO_SHOW,
}


def ensure_transition(reservation: Reservation, target: ReservationStatus) -> None:
    """校验状态流转"""
    if target not in ALLOWED_TRANSITIONS[reservation.status]:
        raise ValueError(
            f"预订状态为 {reservation.status.value}，不能变更为 {target.value}"
        )


class ReservationService:
    """预订服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        self._publish_event = event_publisher or event_bus.publish

    def _generate_reservation_no(self) -> str:
        """生成预订号：RES + 日期 + 序号"""
        prefix = f"RES{datetime.now().strftime('%Y%m%d')}"
        latest = self.db.query(Reservation.reservation_no).filter(
            Reservation.reservation_no.like(f'{prefix}%')
        ).order_by(Reservation.reservation_no.desc()).first()
        seq = int(latest[0][len(prefix):]) + 1 if latest else 1
        return f'{prefix}{str(seq).zfill(3)}'

    def _commit(self, **audit) -> int:
        from folio.services.state_service import StateService

        AuditService(self.db).create_log(**audit)
        version = StateService(self.db).bump()
        self.db.commit()
        return version

    def _publish(self, event_type: EventType, reservation: Reservation,
                 version: int, reason: str = "") -> None:
        self._publish_event(Event(
            event_type=event_type,
            timestamp=datetime.now(),
            data=ReservationChangedData(
                state_version=version,
                reservation_id=reservation.id,
                reservation_no=reservation.reservation_no,
                guest_name=reservation.guest_name,
                status=reservation.status.value,
                room_assigned=reservation.room_assigned,
                reason=reason
            ).to_dict(),
            source="reservation_service"
        ))

    # ============== 查询 ==============

    def get_reservations(self, status: Optional[ReservationStatus] = None,
                         check_in_date: Optional[date] = None,
                         keyword: Optional[str] = None) -> List[Reservation]:
        """获取预订列表"""
        query = self.db.query(Reservation)

        if status:
            query = query.filter(Reservation.status == status)
        if check_in_date:
            query = query.filter(Reservation.check_in_date == check_in_date)
        if keyword:
            query = query.filter(or_(
                Reservation.reservation_no.contains(keyword),
                Reservation.guest_name.contains(keyword),
                Reservation.guest_phone.contains(keyword)
            ))

        return query.order_by(Reservation.check_in_date, Reservation.id).all()

    def get_reservation(self, reservation_id: int) -> Optional[Reservation]:
        """获取单个预订"""
        return self.db.query(Reservation).filter(Reservation.id == reservation_id).first()

    def _require(self, reservation_id: int) -> Reservation:
        reservation = self.get_reservation(reservation_id)
        if not reservation:
            raise NotFoundError("预订不存在")
        return reservation

    def find_checked_in(self, guest_id: int, room_id: int) -> Optional[Reservation]:
        """客人在该房间的已入住预订"""
        return self.db.query(Reservation).filter(
            Reservation.guest_id == guest_id,
            Reservation.assigned_room_id == room_id,
            Reservation.status == ReservationStatus.CHECKED_IN
        ).first()

    # ============== 校验 ==============

    def _validate_assignment(self, reservation: Reservation, room: Room,
                             check_in_date: date = None, check_out_date: date = None) -> None:
        """房型一致、空闲、启用，且日期不与其它未结束预订冲突"""
        check_in_date = check_in_date or reservation.check_in_date
        check_out_date = check_out_date or reservation.check_out_date

        if not room.is_active:
            raise ValueError(f"房间 {room.room_number} 已停用")
        if room.room_type_id != reservation.room_type_id:
            raise ValueError("房间类型与预订不符")
        if room.status != RoomStatus.VACANT:
            raise ValueError(f"房间 {room.room_number} 状态为 {room.status.value}，无法分配")

        self.ensure_room_free(room, check_in_date, check_out_date, exclude_id=reservation.id)

    def find_room_hold(self, room_id: int, check_in_date: date,
                       check_out_date: Optional[date] = None,
                       exclude_id: Optional[int] = None) -> Optional[Reservation]:
        """
        与给定日期重叠、仍占用该房间的其它预订
        check_out_date 为空表示离店日期未定，与入住日之后的所有预订重叠
        """
        query = self.db.query(Reservation).filter(
            Reservation.assigned_room_id == room_id,
            Reservation.status.in_(OPEN_STATUSES),
            Reservation.check_out_date > check_in_date
        )
        if check_out_date is not None:
            query = query.filter(Reservation.check_in_date < check_out_date)
        if exclude_id is not None:
            query = query.filter(Reservation.id != exclude_id)
        return query.order_by(Reservation.check_in_date).first()

    def ensure_room_free(self, room: Room, check_in_date: date,
                         check_out_date: Optional[date] = None,
                         exclude_id: Optional[int] = None) -> None:
        conflict = self.find_room_hold(room.id, check_in_date, check_out_date, exclude_id)
        if conflict:
            raise ValueError(
                f"房间 {room.room_number} 已分配给预订 {conflict.reservation_no}，日期冲突"
            )

    @staticmethod
    def _validate_dates(check_in_date: date, check_out_date: date) -> None:
        if check_out_date <= check_in_date:
            raise ValueError("离店日期必须晚于入住日期")

    # ============== 写操作 ==============

    def create_reservation(self, data: ReservationCreate, created_by: int = None) -> Reservation:
        """创建预订（待确认）"""
        room_type = self.db.query(RoomType).filter(RoomType.id == data.room_type_id).first()
        if not room_type:
            raise NotFoundError("房型不存在")
        self._validate_dates(data.check_in_date, data.check_out_date)

        with lock_registry.hold():
            try:
                reservation = Reservation(
                    reservation_no=self._generate_reservation_no(),
                    guest_name=data.guest_name.strip(),
                    guest_email=data.guest_email,
                    guest_phone=data.guest_phone,
                    check_in_date=data.check_in_date,
                    check_out_date=data.check_out_date,
                    room_type_id=room_type.id,
                    booking_source=data.booking_source,
                    adult_count=data.adult_count,
                    child_count=data.child_count,
                    special_requests=data.special_requests,
                    status=ReservationStatus.PENDING,
                    created_by=created_by
                )
                self.db.add(reservation)
                self.db.flush()
                version = self._commit(
                    action="create_reservation",
                    entity_type="reservation",
                    entity_id=reservation.id,
                    new_value={"reservation_no": reservation.reservation_no,
                               "guest_name": reservation.guest_name},
                    operator_id=created_by
                )
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(reservation)
        self._publish(EventType.RESERVATION_CREATED, reservation, version)
        return reservation

    def update_reservation(self, reservation_id: int, data: ReservationUpdate,
                           operator_id: int = None) -> Reservation:
        """
        修改预订
        - 联系方式、日期、房型、来源只能在 pending / confirmed 时修改
        - 房型变更后，不匹配的已分配房间被清除
        - room_id 表示分配房间；status 只接受 confirmed / cancelled / no_show
        """
        update_data = data.model_dump(exclude_unset=True)
        target_status = update_data.pop('status', None)
        room_id = update_data.pop('room_id', None)

        if target_status in (ReservationStatus.CHECKED_IN, ReservationStatus.CHECKED_OUT):
            raise ValueError("入住、退房只能通过办理入住 / 退房完成")
        if target_status == ReservationStatus.PENDING:
            raise ValueError("预订不能退回待确认状态")

        with lock_registry.hold(room_ids=[room_id]):
            try:
                reservation = self._require(reservation_id)
                old_status = reservation.status
                fields = {k: v for k, v in update_data.items() if v is not None}

                if fields or room_id is not None:
                    if reservation.status not in EDITABLE_STATUSES:
                        raise ValueError(f"状态为 {reservation.status.value} 的预订不可修改")

                if 'room_type_id' in fields:
                    if not self.db.query(RoomType).filter(RoomType.id == fields['room_type_id']).first():
                        raise NotFoundError("房型不存在")
                self._validate_dates(
                    fields.get('check_in_date', reservation.check_in_date),
                    fields.get('check_out_date', reservation.check_out_date)
                )

                for key, value in fields.items():
                    setattr(reservation, key, value)
                if reservation.assigned_room and \
                        reservation.assigned_room.room_type_id != reservation.room_type_id:
                    reservation.assigned_room = None

                if room_id is not None:
                    room = self.db.query(Room).filter(Room.id == room_id).first()
                    if not room:
                        raise NotFoundError("房间不存在")
                    self._validate_assignment(reservation, room)
                    reservation.assigned_room = room

                if target_status is not None and target_status != reservation.status:
                    ensure_transition(reservation, target_status)
                    reservation.status = target_status
                    if target_status == ReservationStatus.CANCELLED:
                        reservation.assigned_room = None

                version = self._commit(
                    action="update_reservation",
                    entity_type="reservation",
                    entity_id=reservation.id,
                    old_value={"status": old_status.value},
                    new_value={**{k: str(v) for k, v in fields.items()},
                               "status": reservation.status.value,
                               "room_assigned": reservation.room_assigned},
                    operator_id=operator_id
                )
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(reservation)
        if reservation.status != old_status and reservation.status in _STATUS_EVENTS:
            self._publish(_STATUS_EVENTS[reservation.status], reservation, version)
        return reservation

    def confirm_reservation(self, reservation_id: int, room_id: Optional[int] = None,
                            operator_id: int = None) -> Reservation:
        """确认预订，可同时分配房间"""
        with lock_registry.hold(room_ids=[room_id]):
            try:
                reservation = self._require(reservation_id)
                ensure_transition(reservation, ReservationStatus.CONFIRMED)
                if room_id is not None:
                    room = self.db.query(Room).filter(Room.id == room_id).first()
                    if not room:
                        raise NotFoundError("房间不存在")
                    self._validate_assignment(reservation, room)
                    reservation.assigned_room = room
                reservation.status = ReservationStatus.CONFIRMED

                version = self._commit(
                    action="confirm_reservation",
                    entity_type="reservation",
                    entity_id=reservation.id,
                    new_value={"status": "confirmed", "room_assigned": reservation.room_assigned},
                    operator_id=operator_id
                )
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(reservation)
        self._publish(EventType.RESERVATION_CONFIRMED, reservation, version)
        return reservation

    def assign_room(self, reservation_id: int, room_id: int,
                    operator_id: int = None) -> Reservation:
        """分配房间（不改变房态）"""
        with lock_registry.hold(room_ids=[room_id]):
            try:
                reservation = self._require(reservation_id)
                if reservation.status not in EDITABLE_STATUSES:
                    raise ValueError(f"状态为 {reservation.status.value} 的预订不能分配房间")
                room = self.db.query(Room).filter(Room.id == room_id).first()
                if not room:
                    raise NotFoundError("房间不存在")
                self._validate_assignment(reservation, room)
                old_room = reservation.room_assigned
                reservation.assigned_room = room

                self._commit(
                    action="assign_room",
                    entity_type="reservation",
                    entity_id=reservation.id,
                    old_value={"room_assigned": old_room},
                    new_value={"room_assigned": room.room_number},
                    operator_id=operator_id
                )
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(reservation)
        return reservation

    def cancel_reservation(self, reservation_id: int, cancel_reason: Optional[str] = None,
                           operator_id: int = None) -> Reservation:
        """取消预订（终态），释放已分配房间"""
        with lock_registry.hold():
            try:
                reservation = self._require(reservation_id)
                ensure_transition(reservation, ReservationStatus.CANCELLED)
                reservation.status = ReservationStatus.CANCELLED
                reservation.cancel_reason = cancel_reason
                reservation.assigned_room = None

                version = self._commit(
                    action="cancel_reservation",
                    entity_type="reservation",
                    entity_id=reservation.id,
                    new_value={"status": "cancelled", "reason": cancel_reason},
                    operator_id=operator_id
                )
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(reservation)
        self._publish(EventType.RESERVATION_CANCELLED, reservation, version, cancel_reason or "")
        return reservation

    def mark_no_show(self, reservation_id: int, operator_id: int = None) -> Reservation:
        """标记未到（终态）"""
        with lock_registry.hold():
            try:
                reservation = self._require(reservation_id)
                ensure_transition(reservation, ReservationStatus.NO_SHOW)
                reservation.status = ReservationStatus.NO_SHOW

                version = self._commit(
                    action="mark_no_show",
                    entity_type="reservation",
                    entity_id=reservation.id,
                    new_value={"status": "no_show"},
                    operator_id=operator_id
                )
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(reservation)
        self._publish(EventType.RESERVATION_NO_SHOW, reservation, version)
        return reservation

    # ============== 编排专用（不提交） ==============

    def mark_checked_in(self, reservation: Reservation, room: Room, guest: Guest) -> None:
        """已确认 -> 已入住，记录入住房间与客人"""
        ensure_transition(reservation, ReservationStatus.CHECKED_IN)
        if room.room_type_id != reservation.room_type_id:
            raise ValueError("房间类型与预订不符")
        self.ensure_room_free(room, reservation.check_in_date, reservation.check_out_date,
                              exclude_id=reservation.id)
        reservation.status = ReservationStatus.CHECKED_IN
        reservation.assigned_room = room
        reservation.guest = guest

    def mark_checked_out(self, reservation: Reservation) -> None:
        """已入住 -> 已退房"""
        ensure_transition(reservation, ReservationStatus.CHECKED_OUT)
        reservation.status = ReservationStatus.CHECKED_OUT
