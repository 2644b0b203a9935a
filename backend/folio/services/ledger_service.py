"""
分类账服务 - 本体操作层
管理 Transaction 对象：只追加，不修改；冲销即物理删除
余额 = 该客人所有账目金额之和（正数消费，负数付款）
本服务只做单实体写入，不提交事务，由编排服务统一提交
"""
from typing import List, Optional
from datetime import date
from sqlalchemy import func
from sqlalchemy.orm import Session
from folio.models.ontology import Transaction, EntryType, PaymentStatus, Guest, Room
from folio.services.errors import NotFoundError


def payment_status(balance_minor: int, reference_rate_minor: int) -> PaymentStatus:
    """
    付款状态分类
    余额 <= 0 为已结清；超过参考房价为欠款；其余为待付
    """
    if balance_minor <= 0:
        return PaymentStatus.PAID
    if balance_minor > reference_rate_minor:
        return PaymentStatus.OWING
    return PaymentStatus.PENDING


class LedgerService:
    """分类账服务"""

    def __init__(self, db: Session):
        self.db = db

    def post_transaction(self, guest_id: int, description: str, amount_minor: int,
                         txn_date: Optional[date] = None,
                         payment_method: Optional[str] = None,
                         reference: Optional[str] = None,
                         invoice_number: Optional[str] = None,
                         receipt_number: Optional[str] = None,
                         is_tax: bool = False,
                         operator_id: Optional[int] = None) -> Transaction:
        """
        追加一条账目
        金额为零或负数都合法；消费未指定时分配发票号，付款未指定时分配收据号
        """
        if isinstance(amount_minor, bool) or not isinstance(amount_minor, int):
            raise ValueError("账目金额必须是整数（最小货币单位）")

        entry_type = EntryType.PAYMENT if amount_minor < 0 else EntryType.CHARGE
        txn = Transaction(
            guest_id=guest_id,
            description=description,
            amount_minor=amount_minor,
            entry_type=entry_type,
            is_tax=is_tax,
            date=txn_date or date.today(),
            payment_method=payment_method,
            reference=reference,
            invoice_number=invoice_number,
            receipt_number=receipt_number,
            created_by=operator_id
        )
        self.db.add(txn)
        self.db.flush()

        if entry_type == EntryType.CHARGE and not txn.invoice_number:
            txn.invoice_number = f"INV-{txn.id:06d}"
        if entry_type == EntryType.PAYMENT and not txn.receipt_number:
            txn.receipt_number = f"REC-{txn.id:06d}"
        return txn

    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        return self.db.query(Transaction).filter(Transaction.id == transaction_id).first()

    def reverse_transaction(self, transaction_id: int) -> Transaction:
        """冲销（删除）账目；权限由编排服务校验"""
        txn = self.get_transaction(transaction_id)
        if not txn:
            raise NotFoundError("账目不存在")
        self.db.delete(txn)
        self.db.flush()
        return txn

    def get_transactions(self, guest_id: Optional[int] = None,
                         limit: Optional[int] = None) -> List[Transaction]:
        """获取账目列表（按入账顺序）"""
        query = self.db.query(Transaction)
        if guest_id is not None:
            query = query.filter(Transaction.guest_id == guest_id)
        query = query.order_by(Transaction.id)
        if limit:
            query = query.limit(limit)
        return query.all()

    def balance_of(self, guest_id: int) -> int:
        """客人余额（最小货币单位）"""
        total = self.db.query(func.coalesce(func.sum(Transaction.amount_minor), 0)).filter(
            Transaction.guest_id == guest_id
        ).scalar()
        return int(total or 0)

    def reference_rate_of(self, guest: Guest) -> int:
        """参考房价：客人当前或最近房间的每晚房价，无房间时为 0"""
        room = self.db.query(Room).filter(Room.guest_id == guest.id).first()
        if room is None and guest.room_number:
            room = self.db.query(Room).filter(Room.room_number == guest.room_number).first()
        return room.rate_minor if room else 0

    def get_folio(self, guest_id: int) -> dict:
        """
        客人账单汇总
        返回账目列表、不含税费的消费小计、消费合计、付款合计（正数）与余额，金额均为最小货币单位
        """
        entries = self.get_transactions(guest_id)
        total_charges = sum(t.amount_minor for t in entries if t.amount_minor > 0)
        total_payments = -sum(t.amount_minor for t in entries if t.amount_minor < 0)
        return {
            "transactions": entries,
            "subtotal_minor": sum(
                t.amount_minor for t in entries if t.amount_minor > 0 and not t.is_tax
            ),
            "total_charges_minor": total_charges,
            "total_payments_minor": total_payments,
            "balance_minor": total_charges - total_payments,
        }
