"""
Pytest 配置和共享 fixtures
"""
import os
import tempfile

# 应用启动（lifespan）使用独立的临时数据库，避免写入工作目录
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.mkdtemp(prefix='folio-test-'), 'folio.db')}"
)

import pytest
from datetime import date
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from folio.database import Base, get_db, seed_singletons
from folio.models import ontology  # noqa
from folio.models.ontology import (
    Employee, EmployeeRole, RoomType, RoomTypeRate, Room, RoomStatus, Guest
)
from folio.models.schemas import CheckInRequest, GuestDraft, ChargeDescriptor
from folio.security.auth import get_password_hash, create_access_token
from folio.services.folio_service import FolioService
from folio.main import app


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话（已写入税费设置与状态版本号）"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    seed_singletons(session)
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def published_events():
    """收集服务发布的事件"""
    return []


@pytest.fixture
def publisher(published_events):
    """注入服务的事件发布器"""
    return published_events.append


# ============== 认证相关 Fixtures ==============

def _make_employee(db_session, username, name, role):
    employee = Employee(
        username=username,
        password_hash=get_password_hash("123456"),
        name=name,
        role=role,
        is_active=True
    )
    db_session.add(employee)
    db_session.commit()
    db_session.refresh(employee)
    return employee


@pytest.fixture
def manager(db_session):
    return _make_employee(db_session, "manager", "值班经理", EmployeeRole.MANAGER)


@pytest.fixture
def admin(db_session):
    return _make_employee(db_session, "sysadmin", "系统管理员", EmployeeRole.ADMIN)


@pytest.fixture
def receptionist(db_session):
    return _make_employee(db_session, "front1", "前台小王", EmployeeRole.RECEPTIONIST)


@pytest.fixture
def housekeeper(db_session):
    return _make_employee(db_session, "house1", "客房小李", EmployeeRole.HOUSEKEEPING)


@pytest.fixture
def accountant(db_session):
    return _make_employee(db_session, "accounts1", "财务小陈", EmployeeRole.ACCOUNTS)


def _headers(employee):
    return {"Authorization": f"Bearer {create_access_token(employee.id, employee.role)}"}


@pytest.fixture
def manager_auth_headers(manager):
    """返回经理认证的请求头"""
    return _headers(manager)


@pytest.fixture
def admin_auth_headers(admin):
    return _headers(admin)


@pytest.fixture
def receptionist_auth_headers(receptionist):
    """返回前台认证的请求头"""
    return _headers(receptionist)


@pytest.fixture
def housekeeping_auth_headers(housekeeper):
    """返回客房认证的请求头"""
    return _headers(housekeeper)


@pytest.fixture
def accounts_auth_headers(accountant):
    return _headers(accountant)


# ============== 实体相关 Fixtures ==============

def _make_room_type(db_session, name, ngn, usd):
    room_type = RoomType(name=name, description=f"{name} Room", max_occupancy=2)
    room_type.rates = [
        RoomTypeRate(currency="NGN", rate_minor=ngn),
        RoomTypeRate(currency="USD", rate_minor=usd),
    ]
    db_session.add(room_type)
    db_session.commit()
    db_session.refresh(room_type)
    return room_type


def _make_room(db_session, number, room_type, floor=1):
    room = Room(
        room_number=number,
        floor=floor,
        room_type_id=room_type.id,
        rate_minor=room_type.rate_for("NGN"),
        status=RoomStatus.VACANT
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def standard_type(db_session):
    """标准间：NGN 20000 / USD 25"""
    return _make_room_type(db_session, "Standard", 2000000, 2500)


@pytest.fixture
def deluxe_type(db_session):
    """豪华间：NGN 35000 / USD 45"""
    return _make_room_type(db_session, "Deluxe", 3500000, 4500)


@pytest.fixture
def room_101(db_session, standard_type):
    return _make_room(db_session, "101", standard_type)


@pytest.fixture
def room_102(db_session, standard_type):
    return _make_room(db_session, "102", standard_type)


@pytest.fixture
def room_201(db_session, deluxe_type):
    return _make_room(db_session, "201", deluxe_type, floor=2)


@pytest.fixture
def sample_guest(db_session):
    """未入住的已有客人"""
    guest = Guest(
        name="Chinedu Okafor",
        phone="+2348012345678",
        id_type="Passport",
        id_number="A01234567",
        currency="NGN",
        arrival_date=date.today()
    )
    db_session.add(guest)
    db_session.commit()
    db_session.refresh(guest)
    return guest


@pytest.fixture
def folio_service(db_session, publisher):
    return FolioService(db_session, event_publisher=publisher)


@pytest.fixture
def checked_in(folio_service, room_101):
    """Ada Obi 入住 101，房费 20000，税费 7.5%"""
    return folio_service.check_in(CheckInRequest(
        guest=GuestDraft(name="Ada Obi", phone="+2348000000001"),
        room_id=room_101.id,
        charge=ChargeDescriptor(description="Room charge", amount=Decimal("20000"))
    ), operator_id=None)
