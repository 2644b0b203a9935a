"""
Pydantic 模式定义
用于 API 请求/响应验证
接口金额统一使用主币种单位的 Decimal（两位小数），服务层换算为最小货币单位
"""
import datetime as dt
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List, Dict
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from folio.models.ontology import (
    RoomStatus, ReservationStatus, EntryType, PaymentStatus, LoyaltyTier, EmployeeRole
)


# ============== 房型 Schemas ==============

class RoomTypeRateItem(BaseModel):
    currency: str = Field(..., min_length=3, max_length=3)
    rate: Decimal = Field(..., ge=0)

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class RoomTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    max_occupancy: int = Field(default=2, ge=1)
    rates: List[RoomTypeRateItem] = []


class RoomTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    max_occupancy: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class RoomTypeResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    max_occupancy: int
    is_active: bool
    rates: Dict[str, Decimal] = {}
    room_count: int = 0


# ============== 房间 Schemas ==============

class RoomCreate(BaseModel):
    room_number: str = Field(..., min_length=1, max_length=10)
    floor: int = 1
    room_type_id: int
    rate: Optional[Decimal] = Field(None, ge=0)  # 为空时取房型基础币种价格


class RoomUpdate(BaseModel):
    room_number: Optional[str] = Field(None, min_length=1, max_length=10)
    floor: Optional[int] = None
    room_type_id: Optional[int] = None
    rate: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None


class RoomResponse(BaseModel):
    id: int
    room_number: str
    floor: int
    room_type_id: int
    room_type_name: Optional[str] = None
    rate: Decimal
    status: RoomStatus
    guest_id: Optional[int] = None
    guest_name: Optional[str] = None
    status_notes: Optional[str] = None
    is_active: bool
    version: int


class RoomStatusUpdate(BaseModel):
    status: RoomStatus
    guest_id: Optional[int] = None
    notes: Optional[str] = None


# ============== 客人 Schemas ==============

class GuestDraft(BaseModel):
    """入住时的客人信息；提供 guest_id 表示关联已有客人"""
    guest_id: Optional[int] = None
    name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    id_type: Optional[str] = Field(None, max_length=30)
    id_number: Optional[str] = Field(None, max_length=50)
    nationality: Optional[str] = None
    address: Optional[str] = None
    arrival_date: Optional[date] = None
    departure_date: Optional[date] = None
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    booking_source: str = "Direct"
    currency: Optional[str] = None
    special_requests: Optional[str] = None
    is_vip: bool = False
    company: Optional[str] = None

    @model_validator(mode='after')
    def require_name_for_new_guest(self):
        if self.guest_id is None and not (self.name and self.name.strip()):
            raise ValueError("新客人必须填写姓名")
        if self.arrival_date and self.departure_date and self.departure_date < self.arrival_date:
            raise ValueError("离店日期不能早于到店日期")
        return self


class GuestUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    id_type: Optional[str] = Field(None, max_length=30)
    id_number: Optional[str] = Field(None, max_length=50)
    nationality: Optional[str] = None
    address: Optional[str] = None
    departure_date: Optional[date] = None
    adults: Optional[int] = Field(None, ge=1)
    children: Optional[int] = Field(None, ge=0)
    special_requests: Optional[str] = None
    is_vip: Optional[bool] = None
    company: Optional[str] = None


class GuestResponse(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    id_type: Optional[str] = None
    id_number: Optional[str] = None
    arrival_date: Optional[date] = None
    departure_date: Optional[date] = None
    room_number: Optional[str] = None
    room_type: Optional[str] = None
    adults: int = 1
    children: int = 0
    booking_source: Optional[str] = None
    currency: Optional[str] = None
    loyalty_points: int
    lifetime_points: int
    loyalty_tier: LoyaltyTier
    is_vip: bool = False
    company: Optional[str] = None
    balance: Decimal = Decimal("0")
    model_config = ConfigDict(from_attributes=True)


# ============== 账目 Schemas ==============

class ChargeDescriptor(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    date: Optional[dt.date] = None


class PaymentDescriptor(BaseModel):
    amount: Decimal = Field(..., gt=0)   # 正数，入账时记为负数
    description: str = Field(default="付款", max_length=200)
    method: Optional[str] = Field(None, max_length=30)
    reference: Optional[str] = Field(None, max_length=100)
    date: Optional[dt.date] = None


class TransactionCreate(BaseModel):
    """直接入账（正数消费，负数付款），不计税"""
    guest_id: int
    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal
    date: Optional[dt.date] = None
    payment_method: Optional[str] = Field(None, max_length=30)
    reference: Optional[str] = Field(None, max_length=100)
    invoice_number: Optional[str] = Field(None, max_length=20)
    receipt_number: Optional[str] = Field(None, max_length=20)

    @field_validator('amount')
    @classmethod
    def finite_amount(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("金额必须是有限数值")
        return v


class TransactionResponse(BaseModel):
    id: int
    guest_id: int
    description: str
    amount: Decimal
    entry_type: EntryType
    is_tax: bool = False
    date: dt.date
    invoice_number: Optional[str] = None
    receipt_number: Optional[str] = None
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    created_at: Optional[datetime] = None


# ============== 入住 / 退房 Schemas ==============

class CheckInRequest(BaseModel):
    guest: GuestDraft
    room_id: int
    charge: ChargeDescriptor
    tax: Optional[ChargeDescriptor] = None   # 为空时按税费设置自动计算
    reservation_id: Optional[int] = None
    expected_version: Optional[int] = None


class CheckOutRequest(BaseModel):
    room_id: int
    guest_id: int
    reservation_id: Optional[int] = None
    payment: Optional[PaymentDescriptor] = None
    expected_version: Optional[int] = None


class ChargeRequest(BaseModel):
    guest_id: int
    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    apply_tax: bool = True
    date: Optional[dt.date] = None


class PaymentRequest(PaymentDescriptor):
    guest_id: int


class MoveGuestRequest(BaseModel):
    guest_id: int
    old_room_id: int
    new_room_id: int


class ReservationResponse(BaseModel):
    id: int
    reservation_no: str
    guest_id: Optional[int] = None
    guest_name: str
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    check_in_date: date
    check_out_date: date
    room_type_id: int
    room_type_name: Optional[str] = None
    room_assigned: Optional[str] = None
    booking_source: Optional[str] = None
    adult_count: int = 1
    child_count: int = 0
    status: ReservationStatus
    special_requests: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None


class ReceiptTaxLine(BaseModel):
    name: str
    rate: Decimal
    is_inclusive: bool
    amount: Decimal


class FolioSnapshot(BaseModel):
    """编排操作返回的快照：客人、房间、预订、账目与余额"""
    state_version: int
    guest: GuestResponse
    room: Optional[RoomResponse] = None
    reservation: Optional[ReservationResponse] = None
    transactions: List[TransactionResponse] = []
    subtotal: Decimal = Decimal("0")             # 不含税费账目的消费小计
    receipt_taxes: List[ReceiptTaxLine] = []
    total_charges: Decimal = Decimal("0")
    total_payments: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    payment_status: PaymentStatus


# ============== 预订 Schemas ==============

class ReservationCreate(BaseModel):
    guest_name: str = Field(..., min_length=1, max_length=100)
    guest_email: Optional[str] = Field(None, max_length=100)
    guest_phone: Optional[str] = Field(None, max_length=30)
    check_in_date: date
    check_out_date: date
    room_type_id: int
    booking_source: str = Field(default="Direct", max_length=50)
    adult_count: int = Field(default=1, ge=1)
    child_count: int = Field(default=0, ge=0)
    special_requests: Optional[str] = None


class ReservationUpdate(BaseModel):
    """预订修改；status 只接受 confirmed / cancelled / no_show"""
    guest_name: Optional[str] = Field(None, min_length=1, max_length=100)
    guest_email: Optional[str] = Field(None, max_length=100)
    guest_phone: Optional[str] = Field(None, max_length=30)
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    room_type_id: Optional[int] = None
    booking_source: Optional[str] = Field(None, max_length=50)
    adult_count: Optional[int] = Field(None, ge=1)
    child_count: Optional[int] = Field(None, ge=0)
    special_requests: Optional[str] = None
    status: Optional[ReservationStatus] = None
    room_id: Optional[int] = None


class ReservationConfirm(BaseModel):
    room_id: Optional[int] = None


class ReservationAssign(BaseModel):
    room_id: int


class ReservationCancel(BaseModel):
    cancel_reason: Optional[str] = None


# ============== 积分 Schemas ==============

class LoyaltyRequest(BaseModel):
    guest_id: int
    points: int
    description: str = Field(default="", max_length=200)


class LoyaltyResult(BaseModel):
    success: bool
    message: str
    guest_id: int
    points_balance: Optional[int] = None
    loyalty_tier: Optional[LoyaltyTier] = None


class LoyaltyTransactionResponse(BaseModel):
    id: int
    guest_id: int
    points: int
    description: str
    date: dt.date
    model_config = ConfigDict(from_attributes=True)


class LoyaltyStats(BaseModel):
    total_members: int
    total_points: int
    average_points: int
    tiers: Dict[str, int]


# ============== 设置 Schemas ==============

class TaxSettingsUpdate(BaseModel):
    is_enabled: Optional[bool] = None


class TaxComponentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    rate: Decimal = Field(..., ge=0, le=100)
    is_inclusive: bool = False
    show_on_receipt: bool = True
    is_active: bool = True


class TaxComponentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    rate: Optional[Decimal] = Field(None, ge=0, le=100)
    is_inclusive: Optional[bool] = None
    show_on_receipt: Optional[bool] = None
    is_active: Optional[bool] = None


class TaxComponentResponse(BaseModel):
    id: int
    name: str
    rate: Decimal
    is_inclusive: bool
    show_on_receipt: bool
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


class TaxSettingsResponse(BaseModel):
    is_enabled: bool
    components: List[TaxComponentResponse] = []
    model_config = ConfigDict(from_attributes=True)


# ============== 全量快照 ==============

class StateSnapshot(BaseModel):
    version: int
    rooms: List[RoomResponse]
    guests: List[GuestResponse]
    reservations: List[ReservationResponse]
    transactions: List[TransactionResponse]
    loyalty_transactions: List[LoyaltyTransactionResponse]
    tax_settings: TaxSettingsResponse


class ClearResult(BaseModel):
    version: int
    guests_removed: int
    transactions_removed: int
    reservations_removed: int
    loyalty_transactions_removed: int


# ============== 认证 / 审计 Schemas ==============

class LoginRequest(BaseModel):
    username: str
    password: str


class OperatorResponse(BaseModel):
    id: int
    username: str
    name: str
    role: EmployeeRole
    is_active: bool
    capabilities: List[str] = []     # manage / front_office / cashier / housekeeping


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    employee: OperatorResponse


class AuditLogResponse(BaseModel):
    id: int
    operator_id: Optional[int] = None
    operator_name: Optional[str] = None
    action: str
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    details: Optional[str] = None
    created_at: Optional[datetime] = None
