"""
本体对象定义 (Ontology Objects)
房间、房型、客人、预订、账目、积分等业务实体的 ORM 模型
金额字段统一以最小货币单位（整数，*_minor）存储
"""
from datetime import datetime, date
from enum import Enum
from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, Date,
    ForeignKey, Text, Enum as SQLEnum, Boolean, Numeric, CheckConstraint,
    UniqueConstraint
)
from sqlalchemy.orm import relationship
from folio.database import Base


# ============== 枚举定义 ==============

class RoomStatus(str, Enum):
    """房间状态枚举"""
    VACANT = "vacant"                  # 空闲
    OCCUPIED = "occupied"              # 入住中
    DIRTY = "dirty"                    # 待清洁
    CLEANING = "cleaning"              # 清洁中
    OUT_OF_ORDER = "out_of_order"      # 维修中


class ReservationStatus(str, Enum):
    """预订状态枚举"""
    PENDING = "pending"          # 待确认
    CONFIRMED = "confirmed"      # 已确认
    CHECKED_IN = "checked_in"    # 已入住
    CHECKED_OUT = "checked_out"  # 已退房
    CANCELLED = "cancelled"      # 已取消
    NO_SHOW = "no_show"          # 未到店


class EntryType(str, Enum):
    """账目类型（由金额符号决定）"""
    CHARGE = "charge"      # 消费
    PAYMENT = "payment"    # 付款


class PaymentStatus(str, Enum):
    """付款状态（展示用分类，不是账务约束）"""
    PAID = "paid"          # 已结清
    PENDING = "pending"    # 待付
    OWING = "owing"        # 欠款（超过一晚房费）


class LoyaltyTier(str, Enum):
    """积分等级"""
    BRONZE = "bronze"       # 铜卡
    SILVER = "silver"       # 银卡
    GOLD = "gold"           # 金卡
    PLATINUM = "platinum"   # 白金


class EmployeeRole(str, Enum):
    """员工角色"""
    ADMIN = "admin"                # 系统管理员
    MANAGER = "manager"            # 经理
    RECEPTIONIST = "receptionist"  # 前台
    HOUSEKEEPING = "housekeeping"  # 客房
    ACCOUNTS = "accounts"          # 财务


# 可以执行冲账、清空数据等破坏性操作的角色
MANAGER_ROLES = (EmployeeRole.ADMIN, EmployeeRole.MANAGER)


# ============== 本体对象定义 ==============

class RoomType(Base):
    """
    房型对象
    名称不区分大小写唯一（由服务层校验）
    """
    __tablename__ = "room_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)  # 房型名称
    description = Column(Text)                               # 描述
    max_occupancy = Column(Integer, default=2)              # 最大入住人数
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 链接
    rooms = relationship("Room", back_populates="room_type")
    rates = relationship(
        "RoomTypeRate", back_populates="room_type", cascade="all, delete-orphan"
    )

    def rate_for(self, currency: str) -> int:
        """获取指定币种的房价（最小货币单位），未配置返回 0"""
        for rate in self.rates:
            if rate.currency == currency:
                return rate.rate_minor
        return 0


class RoomTypeRate(Base):
    """房型分币种价格"""
    __tablename__ = "room_type_rates"
    __table_args__ = (
        UniqueConstraint("room_type_id", "currency", name="uq_room_type_currency"),
    )

    id = Column(Integer, primary_key=True, index=True)
    room_type_id = Column(Integer, ForeignKey("room_types.id"), nullable=False)
    currency = Column(String(3), nullable=False)         # 币种代码
    rate_minor = Column(BigInteger, nullable=False, default=0)

    room_type = relationship("RoomType", back_populates="rates")


class Room(Base):
    """
    房间对象 - 房态状态机的载体
    约束：guest_id 非空 当且仅当 status 为 OCCUPIED
    """
    __tablename__ = "rooms"
    __table_args__ = (
        CheckConstraint(
            "(status = 'OCCUPIED' AND guest_id IS NOT NULL) OR "
            "(status <> 'OCCUPIED' AND guest_id IS NULL)",
            name="ck_room_occupant"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    room_number = Column(String(10), unique=True, nullable=False)  # 房间号，支持 "205B"
    floor = Column(Integer, nullable=False, default=1)             # 楼层
    room_type_id = Column(Integer, ForeignKey("room_types.id"), nullable=False)
    rate_minor = Column(BigInteger, nullable=False, default=0)     # 每晚房价
    status = Column(SQLEnum(RoomStatus), nullable=False, default=RoomStatus.VACANT)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=True)
    status_notes = Column(Text)                                    # 房态备注
    is_active = Column(Boolean, default=True)                      # 是否启用
    version = Column(Integer, nullable=False, default=1)           # 乐观锁版本号
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    # 链接
    room_type = relationship("RoomType", back_populates="rooms")
    guest = relationship("Guest", foreign_keys=[guest_id])


class Guest(Base):
    """
    客人对象
    约束：loyalty_points 永远 >= 0，且等于积分流水之和
    """
    __tablename__ = "guests"
    __table_args__ = (
        CheckConstraint("loyalty_points >= 0", name="ck_guest_points_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # 身份信息
    name = Column(String(100), nullable=False)           # 姓名
    email = Column(String(100))                          # 邮箱
    phone = Column(String(30))                           # 手机号
    id_type = Column(String(30))                         # 证件类型
    id_number = Column(String(50))                       # 证件号码
    nationality = Column(String(50))
    address = Column(Text)
    # 住宿信息
    arrival_date = Column(Date)                          # 到店日期
    departure_date = Column(Date)                        # 离店日期
    room_number = Column(String(10))                     # 当前/最近房间号
    room_type = Column(String(50))                       # 当前/最近房型名
    adults = Column(Integer, default=1)
    children = Column(Integer, default=0)
    booking_source = Column(String(50), default="Direct")
    currency = Column(String(3), default="NGN")
    special_requests = Column(Text)
    # 积分信息
    loyalty_points = Column(Integer, nullable=False, default=0)    # 当前积分（缓存投影）
    lifetime_points = Column(Integer, nullable=False, default=0)   # 累计获得积分
    loyalty_tier = Column(SQLEnum(LoyaltyTier), nullable=False, default=LoyaltyTier.BRONZE)
    # 分类
    is_vip = Column(Boolean, default=False)
    company = Column(String(100))                        # 协议单位
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    # 链接
    transactions = relationship("Transaction", back_populates="guest")
    loyalty_transactions = relationship("LoyaltyTransaction", back_populates="guest")


class Reservation(Base):
    """
    预订对象 - 预订阶段的聚合根
    状态单调推进，取消 / 未到为终态
    """
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    reservation_no = Column(String(20), unique=True, nullable=False)  # 预订号
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=True)  # 入住后关联客人
    guest_name = Column(String(100), nullable=False)
    guest_email = Column(String(100))
    guest_phone = Column(String(30))
    check_in_date = Column(Date, nullable=False)         # 入住日期
    check_out_date = Column(Date, nullable=False)        # 离店日期
    room_type_id = Column(Integer, ForeignKey("room_types.id"), nullable=False)
    assigned_room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)
    booking_source = Column(String(50), default="Direct")  # OTA 名称或 Direct
    adult_count = Column(Integer, default=1)
    child_count = Column(Integer, default=0)
    status = Column(SQLEnum(ReservationStatus), nullable=False, default=ReservationStatus.PENDING)
    special_requests = Column(Text)
    cancel_reason = Column(Text)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    created_by = Column(Integer, ForeignKey("employees.id"))

    __mapper_args__ = {"version_id_col": version}

    # 链接
    guest = relationship("Guest")
    room_type = relationship("RoomType")
    assigned_room = relationship("Room")

    @property
    def room_assigned(self):
        """已分配的房间号"""
        return self.assigned_room.room_number if self.assigned_room else None


class Transaction(Base):
    """
    账目（分类账条目）
    正数为消费，负数为付款；创建后不可修改，只能经理冲销（物理删除）
    """
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=False, index=True)
    description = Column(String(200), nullable=False)
    amount_minor = Column(BigInteger, nullable=False)    # 有符号金额
    entry_type = Column(SQLEnum(EntryType), nullable=False)
    is_tax = Column(Boolean, nullable=False, default=False)   # 按税费项生成的账目
    date = Column(Date, nullable=False, default=date.today)
    invoice_number = Column(String(20))
    receipt_number = Column(String(20))
    payment_method = Column(String(30))
    reference = Column(String(100))
    created_at = Column(DateTime, default=datetime.utcnow)
    created_by = Column(Integer, ForeignKey("employees.id"))

    # 链接
    guest = relationship("Guest", back_populates="transactions")


class LoyaltyTransaction(Base):
    """积分流水：正数为获得，负数为兑换"""
    __tablename__ = "loyalty_transactions"

    id = Column(Integer, primary_key=True, index=True)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=False, index=True)
    points = Column(Integer, nullable=False)
    description = Column(String(200), nullable=False)
    date = Column(Date, nullable=False, default=date.today)
    created_at = Column(DateTime, default=datetime.utcnow)

    guest = relationship("Guest", back_populates="loyalty_transactions")


class TaxSettings(Base):
    """
    税费设置（单行表）
    总开关加若干税费项，只在入账时读取，不回溯修改历史账目
    """
    __tablename__ = "tax_settings"

    id = Column(Integer, primary_key=True)
    is_enabled = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    updated_by = Column(Integer, ForeignKey("employees.id"))

    components = relationship(
        "TaxComponent", back_populates="settings",
        order_by="TaxComponent.id", cascade="all, delete-orphan"
    )


class TaxComponent(Base):
    """
    税费项
    价外税（is_inclusive=False）入账时单独记一笔；价内税已含在房费中，只在账单上展示
    """
    __tablename__ = "tax_components"

    id = Column(Integer, primary_key=True, index=True)
    settings_id = Column(Integer, ForeignKey("tax_settings.id"), nullable=False)
    name = Column(String(50), nullable=False)
    rate = Column(Numeric(5, 2), nullable=False, default=0)   # 百分比
    is_inclusive = Column(Boolean, nullable=False, default=False)
    show_on_receipt = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    settings = relationship("TaxSettings", back_populates="components")


class StateVersion(Base):
    """全局状态版本号（单行表），每次提交的写操作递增"""
    __tablename__ = "state_versions"

    id = Column(Integer, primary_key=True)
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Employee(Base):
    """员工对象（操作员账号）"""
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False)  # 登录账号
    password_hash = Column(String(255), nullable=False)  # 密码哈希
    name = Column(String(100), nullable=False)           # 姓名
    role = Column(SQLEnum(EmployeeRole), nullable=False)
    is_active = Column(Boolean, default=True)            # 是否启用
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES


class SystemLog(Base):
    """
    系统日志对象
    记录账务子系统的每次写操作用于审计
    """
    __tablename__ = "system_logs"

    id = Column(Integer, primary_key=True, index=True)
    operator_id = Column(Integer, ForeignKey("employees.id"))
    action = Column(String(100), nullable=False)         # 操作类型
    entity_type = Column(String(50))                     # 实体类型
    entity_id = Column(Integer)                          # 实体ID
    old_value = Column(Text)                             # 旧值(JSON)
    new_value = Column(Text)                             # 新值(JSON)
    details = Column(Text)                               # 说明
    created_at = Column(DateTime, default=datetime.utcnow)

    # 链接
    operator = relationship("Employee")
