"""
账务编排服务 - 唯一允许跨聚合写入的服务
入住、退房、入账、冲账、换房、清空数据
每个操作是一个会话事务：先校验全部前置条件，再写入，最后一次提交；任何异常回滚
在锁注册表的共享闸门与房间 / 客人锁内执行，事务提交后发布领域事件
"""
from typing import List, Optional, Callable
from datetime import date, datetime
from decimal import Decimal
import logging
from sqlalchemy.orm import Session
from folio.models.ontology import (
    Room, RoomStatus, Guest, Reservation, ReservationStatus, Transaction,
    LoyaltyTransaction, SystemLog, Employee
)
from folio.models.schemas import CheckInRequest, CheckOutRequest, TransactionCreate
from folio.models.events import (
    EventType, GuestCheckedInData, GuestCheckedOutData, GuestMovedData,
    RoomStatusChangedData, TransactionData, StateClearedData
)
from folio.services.event_bus import event_bus, Event
from folio.services.audit_service import AuditService
from folio.services.errors import NotFoundError, PermissionDeniedError
from folio.services.guest_service import GuestService
from folio.services.ledger_service import LedgerService, payment_status
from folio.services.locks import lock_registry
from folio.services.rate_policy import tax_lines, receipt_taxes, to_minor, from_minor
from folio.services.reservation_service import ReservationService
from folio.services.room_service import RoomService
from folio.services.serializers import (
    guest_to_dict, room_to_dict, reservation_to_dict, transaction_to_dict
)
from folio.services.settings_service import SettingsService
from folio.services.state_service import StateService

logger = logging.getLogger(__name__)

# 清空数据时一并删除的审计实体类型
LEDGER_AUDIT_ENTITIES = ("guest", "transaction", "reservation", "folio")


class FolioService:
    """账务编排服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish
        self.ledger = LedgerService(db)
        self.rooms = RoomService(db, event_publisher)
        self.reservations = ReservationService(db, event_publisher)
        self.guests = GuestService(db)
        self.tax = SettingsService(db, event_publisher)
        self.state = StateService(db)
        self.audit = AuditService(db)

    # ============== 内部工具 ==============

    def _fresh_room(self, room_id: int) -> Room:
        room = self.db.query(Room).populate_existing().filter(Room.id == room_id).first()
        if not room:
            raise NotFoundError("房间不存在")
        return room

    def _fresh_guest(self, guest_id: int) -> Guest:
        guest = self.db.query(Guest).populate_existing().filter(Guest.id == guest_id).first()
        if not guest:
            raise NotFoundError("客人不存在")
        return guest

    def _current_room_of(self, guest: Guest) -> Optional[Room]:
        return self.db.query(Room).filter(Room.guest_id == guest.id).first()

    def _post_charge_with_tax(self, guest: Guest, description: str, amount_minor: int,
                              txn_date: Optional[date] = None, apply_tax: bool = True,
                              tax_minor: Optional[int] = None,
                              tax_label: Optional[str] = None,
                              operator_id: int = None) -> List[Transaction]:
        """
        入账消费，税费启用时按税费项逐项追加税费账目
        指定 tax_minor 时只记这一笔税费；否则每个有效价外税费项一笔，税额为 0 的项跳过
        """
        entries = [self.ledger.post_transaction(
            guest.id, description, amount_minor, txn_date, operator_id=operator_id
        )]

        tax_settings = self.tax.get_tax_settings()
        if not (apply_tax and tax_settings.is_enabled):
            return entries

        if tax_minor is not None:
            lines = [(tax_label or "Tax", tax_minor)]
        else:
            lines = tax_lines(amount_minor, tax_settings)

        for label, amount in lines:
            entries.append(self.ledger.post_transaction(
                guest.id, label, amount, txn_date, is_tax=True, operator_id=operator_id
            ))
        return entries

    def _publish_transactions(self, entries: List[Transaction], version: int,
                              operator_id: int = None,
                              event_type: EventType = EventType.TRANSACTION_POSTED) -> None:
        for txn in entries:
            self._publish_event(Event(
                event_type=event_type,
                timestamp=datetime.now(),
                data=TransactionData(
                    state_version=version,
                    transaction_id=txn.id,
                    guest_id=txn.guest_id,
                    description=txn.description,
                    amount_minor=txn.amount_minor,
                    entry_type=txn.entry_type.value,
                    operator_id=operator_id
                ).to_dict(),
                source="folio_service"
            ))

    def _publish_room_status(self, room: Room, old_status: RoomStatus, version: int,
                             operator_id: int = None, reason: str = "") -> None:
        self._publish_event(Event(
            event_type=EventType.ROOM_STATUS_CHANGED,
            timestamp=datetime.now(),
            data=RoomStatusChangedData(
                state_version=version,
                room_id=room.id,
                room_number=room.room_number,
                old_status=old_status.value,
                new_status=room.status.value,
                guest_id=room.guest_id,
                changed_by=operator_id,
                reason=reason
            ).to_dict(),
            source="folio_service"
        ))

    def _snapshot(self, guest: Guest, room: Optional[Room] = None,
                  reservation: Optional[Reservation] = None,
                  version: Optional[int] = None) -> dict:
        """客人账务快照"""
        folio = self.ledger.get_folio(guest.id)
        room = room or self._current_room_of(guest)
        reference_rate = room.rate_minor if room else self.ledger.reference_rate_of(guest)
        return {
            "state_version": version if version is not None else self.state.current_version(),
            "guest": guest_to_dict(guest, folio["balance_minor"]),
            "room": room_to_dict(room) if room else None,
            "reservation": reservation_to_dict(reservation) if reservation else None,
            "transactions": [transaction_to_dict(t) for t in folio["transactions"]],
            "subtotal": from_minor(folio["subtotal_minor"]),
            "receipt_taxes": [
                {"name": line["name"], "rate": line["rate"], "is_inclusive": line["is_inclusive"],
                 "amount": from_minor(line["amount_minor"])}
                for line in receipt_taxes(folio["subtotal_minor"], self.tax.get_tax_settings())
            ],
            "total_charges": from_minor(folio["total_charges_minor"]),
            "total_payments": from_minor(folio["total_payments_minor"]),
            "balance": from_minor(folio["balance_minor"]),
            "payment_status": payment_status(folio["balance_minor"], reference_rate),
        }

    # ============== 入住 / 退房 ==============

    def check_in(self, data: CheckInRequest, operator_id: int = None) -> dict:
        """
        办理入住
        业务规则：
        - 房间存在、启用且空闲
        - 关联已有客人时客人必须存在且未入住其它房间
        - 关联预订时预订必须已确认，且房型一致
        - 房间不能被其它日期重叠的预订占用
        - 新建或关联客人，房间设为入住，预订设为已入住
        - 入账房费，税费启用时追加税费账目
        """
        draft = data.guest
        charge_minor = to_minor(data.charge.amount)
        explicit_tax_minor = to_minor(data.tax.amount) if data.tax else None

        with lock_registry.hold(room_ids=[data.room_id], guest_ids=[draft.guest_id]):
            try:
                self.state.assert_version(data.expected_version)

                room = self._fresh_room(data.room_id)
                if not room.is_active:
                    raise ValueError(f"房间 {room.room_number} 已停用")
                if room.status != RoomStatus.VACANT:
                    raise ValueError(f"房间 {room.room_number} 状态为 {room.status.value}，无法入住")

                guest = None
                if draft.guest_id is not None:
                    guest = self._fresh_guest(draft.guest_id)
                    current = self._current_room_of(guest)
                    if current:
                        raise ValueError(f"客人 {guest.name} 已入住房间 {current.room_number}")

                reservation = None
                if data.reservation_id is not None:
                    reservation = self.reservations.get_reservation(data.reservation_id)
                    if not reservation:
                        raise NotFoundError("预订不存在")
                    if reservation.status != ReservationStatus.CONFIRMED:
                        raise ValueError(
                            f"预订状态为 {reservation.status.value}，无法办理入住"
                        )
                    if room.room_type_id != reservation.room_type_id:
                        raise ValueError("房间类型与预订不符")
                    stay_start, stay_end = reservation.check_in_date, reservation.check_out_date
                else:
                    # 散客未填离店日期时，视为与入住日之后的所有预订重叠
                    stay_start = draft.arrival_date or date.today()
                    stay_end = draft.departure_date
                self.reservations.ensure_room_free(
                    room, stay_start, stay_end,
                    exclude_id=reservation.id if reservation else None
                )

                # 校验完成，开始写入
                if guest is None:
                    guest = self.guests.build_guest(draft)
                else:
                    guest.arrival_date = draft.arrival_date or date.today()
                    if draft.departure_date:
                        guest.departure_date = draft.departure_date

                old_status = self.rooms.occupy(room, guest)
                if reservation:
                    self.reservations.mark_checked_in(reservation, room, guest)

                entries = self._post_charge_with_tax(
                    guest, data.charge.description, charge_minor, data.charge.date,
                    tax_minor=explicit_tax_minor,
                    tax_label=data.tax.description if data.tax else None,
                    operator_id=operator_id
                )

                self.audit.create_log(
                    action="check_in",
                    entity_type="guest",
                    entity_id=guest.id,
                    old_value={"room_status": old_status.value},
                    new_value={
                        "room_number": room.room_number,
                        "reservation_id": reservation.id if reservation else None,
                        "transactions": [t.id for t in entries],
                    },
                    operator_id=operator_id
                )
                version = self.state.bump()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        balance = self.ledger.balance_of(guest.id)
        logger.info(f"Guest {guest.id} checked in to room {room.room_number}, balance={balance}")

        self._publish_room_status(room, old_status, version, operator_id, "check_in")
        self._publish_transactions(entries, version, operator_id)
        self._publish_event(Event(
            event_type=EventType.GUEST_CHECKED_IN,
            timestamp=datetime.now(),
            data=GuestCheckedInData(
                state_version=version,
                guest_id=guest.id,
                guest_name=guest.name,
                room_id=room.id,
                room_number=room.room_number,
                reservation_id=reservation.id if reservation else None,
                posted_transaction_ids=[t.id for t in entries],
                balance_minor=balance,
                operator_id=operator_id
            ).to_dict(),
            source="folio_service"
        ))

        return self._snapshot(guest, room, reservation, version)

    def check_out(self, data: CheckOutRequest, operator_id: int = None) -> dict:
        """
        办理退房
        业务规则：
        - 房间必须由该客人入住
        - 有付款时入账为负数
        - 房间设为待清洁并清除住客
        - 关联预订（指定的或该客人在此房间的已入住预订）设为已退房
        - 余额不为零也允许退房
        """
        payment_minor = to_minor(data.payment.amount) if data.payment else 0

        with lock_registry.hold(room_ids=[data.room_id], guest_ids=[data.guest_id]):
            try:
                self.state.assert_version(data.expected_version)

                room = self._fresh_room(data.room_id)
                guest = self._fresh_guest(data.guest_id)
                if room.status != RoomStatus.OCCUPIED or room.guest_id != guest.id:
                    raise ValueError(f"房间 {room.room_number} 当前没有该客人入住")

                if data.reservation_id is not None:
                    reservation = self.reservations.get_reservation(data.reservation_id)
                    if not reservation:
                        raise NotFoundError("预订不存在")
                    if reservation.status != ReservationStatus.CHECKED_IN:
                        raise ValueError(
                            f"预订状态为 {reservation.status.value}，无法办理退房"
                        )
                    if reservation.assigned_room_id != room.id:
                        raise ValueError("预订与退房房间不符")
                else:
                    reservation = self.reservations.find_checked_in(guest.id, room.id)

                # 校验完成，开始写入
                entries = []
                if data.payment:
                    entries.append(self.ledger.post_transaction(
                        guest.id,
                        data.payment.description,
                        -payment_minor,
                        data.payment.date,
                        payment_method=data.payment.method,
                        reference=data.payment.reference,
                        operator_id=operator_id
                    ))

                old_status = self.rooms.vacate(room)
                if reservation:
                    self.reservations.mark_checked_out(reservation)

                self.audit.create_log(
                    action="check_out",
                    entity_type="guest",
                    entity_id=guest.id,
                    old_value={"room_number": room.room_number, "room_status": old_status.value},
                    new_value={
                        "room_status": room.status.value,
                        "payment_minor": payment_minor,
                        "reservation_id": reservation.id if reservation else None,
                    },
                    operator_id=operator_id
                )
                version = self.state.bump()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        balance = self.ledger.balance_of(guest.id)
        if balance > 0:
            logger.warning(f"Guest {guest.id} checked out with outstanding balance {balance}")

        self._publish_room_status(room, old_status, version, operator_id, "check_out")
        self._publish_transactions(entries, version, operator_id)
        self._publish_event(Event(
            event_type=EventType.GUEST_CHECKED_OUT,
            timestamp=datetime.now(),
            data=GuestCheckedOutData(
                state_version=version,
                guest_id=guest.id,
                guest_name=guest.name,
                room_id=room.id,
                room_number=room.room_number,
                reservation_id=reservation.id if reservation else None,
                payment_minor=payment_minor,
                balance_minor=balance,
                operator_id=operator_id
            ).to_dict(),
            source="folio_service"
        ))

        return self._snapshot(guest, room, reservation, version)

    # ============== 入账 / 冲账 ==============

    def post_charge(self, guest_id: int, description: str, amount: Decimal,
                    apply_tax: bool = True, txn_date: Optional[date] = None,
                    operator_id: int = None) -> dict:
        """入账消费（可附加税费），不修改房间和预订"""
        amount_minor = to_minor(amount)

        with lock_registry.hold(guest_ids=[guest_id]):
            try:
                guest = self._fresh_guest(guest_id)
                entries = self._post_charge_with_tax(
                    guest, description, amount_minor, txn_date,
                    apply_tax=apply_tax, operator_id=operator_id
                )
                self.audit.create_log(
                    action="post_charge",
                    entity_type="folio",
                    entity_id=guest.id,
                    new_value={"transactions": [t.id for t in entries],
                               "amount_minor": amount_minor, "apply_tax": apply_tax},
                    operator_id=operator_id
                )
                version = self.state.bump()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self._publish_transactions(entries, version, operator_id)
        return self._snapshot(guest, version=version)

    def post_payment(self, guest_id: int, amount: Decimal, description: str = "付款",
                     method: Optional[str] = None, reference: Optional[str] = None,
                     txn_date: Optional[date] = None, operator_id: int = None) -> dict:
        """入账付款（记为负数，分配收据号）"""
        amount_minor = to_minor(amount)
        if amount_minor <= 0:
            raise ValueError("付款金额必须大于 0")

        with lock_registry.hold(guest_ids=[guest_id]):
            try:
                guest = self._fresh_guest(guest_id)
                txn = self.ledger.post_transaction(
                    guest.id, description, -amount_minor, txn_date,
                    payment_method=method, reference=reference, operator_id=operator_id
                )
                self.audit.create_log(
                    action="post_payment",
                    entity_type="folio",
                    entity_id=guest.id,
                    new_value={"transaction_id": txn.id, "amount_minor": -amount_minor,
                               "method": method},
                    operator_id=operator_id
                )
                version = self.state.bump()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self._publish_transactions([txn], version, operator_id)
        return self._snapshot(guest, version=version)

    def post_transaction(self, data: TransactionCreate, operator_id: int = None) -> Transaction:
        """直接入账（不计税），金额符号决定消费或付款"""
        amount_minor = to_minor(data.amount)

        with lock_registry.hold(guest_ids=[data.guest_id]):
            try:
                guest = self._fresh_guest(data.guest_id)
                txn = self.ledger.post_transaction(
                    guest.id, data.description, amount_minor, data.date,
                    payment_method=data.payment_method,
                    reference=data.reference,
                    invoice_number=data.invoice_number,
                    receipt_number=data.receipt_number,
                    operator_id=operator_id
                )
                self.audit.create_log(
                    action="post_transaction",
                    entity_type="transaction",
                    entity_id=txn.id,
                    new_value={"guest_id": guest.id, "amount_minor": amount_minor,
                               "description": data.description},
                    operator_id=operator_id
                )
                version = self.state.bump()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(txn)

        self._publish_transactions([txn], version, operator_id)
        return txn

    def reverse_transaction(self, transaction_id: int, operator: Employee) -> dict:
        """冲销账目，仅经理 / 管理员可操作"""
        if operator is None or not operator.is_manager:
            raise PermissionDeniedError("只有经理或管理员可以冲销账目")

        txn = self.ledger.get_transaction(transaction_id)
        if not txn:
            raise NotFoundError("账目不存在")

        with lock_registry.hold(guest_ids=[txn.guest_id]):
            try:
                removed = self.ledger.reverse_transaction(transaction_id)
                removed_data = transaction_to_dict(removed)
                removed_amount_minor = removed.amount_minor
                self.audit.create_log(
                    action="reverse_transaction",
                    entity_type="transaction",
                    entity_id=transaction_id,
                    old_value={"guest_id": removed.guest_id,
                               "description": removed.description,
                               "amount_minor": removed.amount_minor},
                    operator_id=operator.id
                )
                version = self.state.bump()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(f"Transaction {transaction_id} reversed by {operator.username}")
        self._publish_event(Event(
            event_type=EventType.TRANSACTION_REVERSED,
            timestamp=datetime.now(),
            data=TransactionData(
                state_version=version,
                transaction_id=transaction_id,
                guest_id=removed_data["guest_id"],
                description=removed_data["description"],
                amount_minor=removed_amount_minor,
                entry_type=removed_data["entry_type"].value,
                operator_id=operator.id
            ).to_dict(),
            source="folio_service"
        ))
        return {"state_version": version, "transaction": removed_data}

    # ============== 换房 ==============

    def move_guest(self, guest_id: int, old_room_id: int, new_room_id: int,
                   operator_id: int = None) -> dict:
        """
        换房
        原房间必须由该客人入住，新房间必须空闲、启用且未被其它预订占用
        有已入住预订时新房间必须与预订房型一致
        原房间设为待清洁，已入住预订随客人转到新房间
        """
        if old_room_id == new_room_id:
            raise ValueError("新旧房间相同")

        with lock_registry.hold(room_ids=[old_room_id, new_room_id], guest_ids=[guest_id]):
            try:
                guest = self._fresh_guest(guest_id)
                old_room = self._fresh_room(old_room_id)
                new_room = self._fresh_room(new_room_id)

                if old_room.status != RoomStatus.OCCUPIED or old_room.guest_id != guest.id:
                    raise ValueError(f"房间 {old_room.room_number} 当前没有该客人入住")
                if not new_room.is_active:
                    raise ValueError(f"房间 {new_room.room_number} 已停用")
                if new_room.status != RoomStatus.VACANT:
                    raise ValueError(
                        f"房间 {new_room.room_number} 状态为 {new_room.status.value}，无法换入"
                    )

                reservation = self.reservations.find_checked_in(guest.id, old_room.id)
                if reservation:
                    if new_room.room_type_id != reservation.room_type_id:
                        raise ValueError("新房间类型与预订不符")
                    stay_start, stay_end = reservation.check_in_date, reservation.check_out_date
                else:
                    stay_start, stay_end = date.today(), guest.departure_date
                self.reservations.ensure_room_free(
                    new_room, stay_start, stay_end,
                    exclude_id=reservation.id if reservation else None
                )

                old_room_status = self.rooms.vacate(old_room)
                new_room_status = self.rooms.occupy(new_room, guest)
                if reservation:
                    reservation.assigned_room = new_room

                self.audit.create_log(
                    action="move_guest",
                    entity_type="guest",
                    entity_id=guest.id,
                    old_value={"room_number": old_room.room_number},
                    new_value={"room_number": new_room.room_number},
                    operator_id=operator_id
                )
                version = self.state.bump()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self._publish_room_status(old_room, old_room_status, version, operator_id, "move_guest")
        self._publish_room_status(new_room, new_room_status, version, operator_id, "move_guest")
        self._publish_event(Event(
            event_type=EventType.GUEST_MOVED,
            timestamp=datetime.now(),
            data=GuestMovedData(
                state_version=version,
                guest_id=guest.id,
                guest_name=guest.name,
                old_room_id=old_room.id,
                old_room_number=old_room.room_number,
                new_room_id=new_room.id,
                new_room_number=new_room.room_number,
                operator_id=operator_id
            ).to_dict(),
            source="folio_service"
        ))
        return self._snapshot(guest, new_room, reservation, version)

    # ============== 清空数据 ==============

    def clear_all_data(self, operator: Employee) -> dict:
        """
        清空业务数据，仅经理 / 管理员可操作
        删除客人、预订、账目、积分流水及相关审计日志，所有房间重置为空闲
        房间、房型、员工与税费设置保留
        """
        if operator is None or not operator.is_manager:
            raise PermissionDeniedError("只有经理或管理员可以清空数据")

        with lock_registry.exclusive():
            try:
                for room in self.db.query(Room).all():
                    if room.guest_id is not None or room.status != RoomStatus.VACANT:
                        room.guest = None
                        room.status = RoomStatus.VACANT
                self.db.flush()

                loyalty_removed = self.db.query(LoyaltyTransaction).delete(synchronize_session=False)
                transactions_removed = self.db.query(Transaction).delete(synchronize_session=False)
                reservations_removed = self.db.query(Reservation).delete(synchronize_session=False)
                guests_removed = self.db.query(Guest).delete(synchronize_session=False)
                self.db.query(SystemLog).filter(
                    SystemLog.entity_type.in_(LEDGER_AUDIT_ENTITIES)
                ).delete(synchronize_session=False)

                counts = {
                    "guests_removed": guests_removed,
                    "transactions_removed": transactions_removed,
                    "reservations_removed": reservations_removed,
                    "loyalty_transactions_removed": loyalty_removed,
                }
                self.audit.create_log(
                    action="clear_all_data",
                    entity_type="state",
                    new_value=counts,
                    operator_id=operator.id
                )
                version = self.state.bump()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        self.db.expire_all()

        logger.warning(f"All ledger data cleared by {operator.username}: {counts}")
        self._publish_event(Event(
            event_type=EventType.STATE_CLEARED,
            timestamp=datetime.now(),
            data=StateClearedData(
                state_version=version,
                operator_id=operator.id,
                guests_removed=guests_removed,
                transactions_removed=transactions_removed,
                reservations_removed=reservations_removed
            ).to_dict(),
            source="folio_service"
        ))
        return {"version": version, **counts}

    # ============== 查询 ==============

    def get_guest_folio(self, guest_id: int) -> dict:
        """客人账单：客人、房间、账目、余额与付款状态"""
        guest = self.db.query(Guest).filter(Guest.id == guest_id).first()
        if not guest:
            raise NotFoundError("客人不存在")
        reservation = self.db.query(Reservation).filter(
            Reservation.guest_id == guest.id
        ).order_by(Reservation.id.desc()).first()
        return self._snapshot(guest, reservation=reservation)

    def get_snapshot(self) -> dict:
        """全量快照"""
        return self.state.get_snapshot()
