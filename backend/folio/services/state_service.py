"""
状态版本服务
- 全局状态版本号：每次提交的写操作递增一次
- 全量快照：房间、客人、预订、账目、积分流水、税费设置
"""
from typing import Optional
from sqlalchemy.orm import Session
from folio.models.ontology import (
    StateVersion, Room, Guest, Reservation, Transaction, LoyaltyTransaction
)
from folio.services.errors import VersionConflictError
from folio.services.ledger_service import LedgerService
from folio.services.settings_service import SettingsService
from folio.services.serializers import (
    room_to_dict, guest_to_dict, reservation_to_dict, transaction_to_dict, tax_settings_to_dict
)


class StateService:
    """状态版本服务"""

    def __init__(self, db: Session):
        self.db = db

    def _row(self) -> StateVersion:
        row = self.db.query(StateVersion).filter(StateVersion.id == 1).first()
        if row is None:
            row = StateVersion(id=1, version=0)
            self.db.add(row)
            self.db.flush()
        return row

    def current_version(self) -> int:
        return self._row().version

    def assert_version(self, expected_version: Optional[int]) -> None:
        """expected_version 为空时不校验"""
        if expected_version is None:
            return
        current = self.current_version()
        if current != expected_version:
            raise VersionConflictError(
                f"数据已被修改（当前版本 {current}，请求版本 {expected_version}），请刷新后重试"
            )

    def bump(self) -> int:
        """递增版本号（不提交），返回新版本号"""
        row = self._row()
        self.db.query(StateVersion).filter(StateVersion.id == row.id).update(
            {StateVersion.version: StateVersion.version + 1},
            synchronize_session=False
        )
        self.db.refresh(row)
        return row.version

    def get_snapshot(self) -> dict:
        """全量快照"""
        ledger = LedgerService(self.db)
        guests = self.db.query(Guest).order_by(Guest.id).all()
        tax = SettingsService(self.db).get_tax_settings()
        return {
            "version": self.current_version(),
            "rooms": [room_to_dict(r) for r in self.db.query(Room).order_by(Room.room_number).all()],
            "guests": [guest_to_dict(g, ledger.balance_of(g.id)) for g in guests],
            "reservations": [
                reservation_to_dict(r)
                for r in self.db.query(Reservation).order_by(Reservation.id).all()
            ],
            "transactions": [
                transaction_to_dict(t)
                for t in self.db.query(Transaction).order_by(Transaction.id).all()
            ],
            "loyalty_transactions": [
                {"id": lt.id, "guest_id": lt.guest_id, "points": lt.points,
                 "description": lt.description, "date": lt.date}
                for lt in self.db.query(LoyaltyTransaction).order_by(LoyaltyTransaction.id).all()
            ],
            "tax_settings": tax_settings_to_dict(tax),
        }
