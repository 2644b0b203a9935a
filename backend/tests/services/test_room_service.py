"""
房间服务测试
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal

from folio.models.events import EventType
from folio.models.ontology import Room, RoomStatus, RoomType, Reservation, ReservationStatus
from folio.models.schemas import (
    RoomCreate, RoomUpdate, RoomTypeCreate, RoomTypeUpdate, RoomTypeRateItem
)
from folio.services.errors import NotFoundError, PermissionDeniedError
from folio.services.room_service import RoomService


@pytest.fixture
def room_service(db_session, publisher):
    return RoomService(db_session, event_publisher=publisher)


class TestRoomTypes:

    def test_create_with_rates(self, room_service):
        room_type = room_service.create_room_type(RoomTypeCreate(
            name="Suite",
            rates=[RoomTypeRateItem(currency="ngn", rate=Decimal("60000")),
                   RoomTypeRateItem(currency="USD", rate=Decimal("80.50"))]
        ))
        assert room_type.rate_for("NGN") == 6000000
        assert room_type.rate_for("USD") == 8050
        assert room_type.rate_for("EUR") == 0

    def test_name_unique_case_insensitive(self, room_service, standard_type):
        with pytest.raises(ValueError, match="已存在"):
            room_service.create_room_type(RoomTypeCreate(name="standard"))

    def test_unsupported_currency(self, room_service):
        with pytest.raises(ValueError, match="不支持的币种"):
            room_service.create_room_type(RoomTypeCreate(
                name="Suite", rates=[RoomTypeRateItem(currency="EUR", rate=Decimal("1"))]
            ))

    def test_update_rename_conflict(self, room_service, standard_type, deluxe_type):
        with pytest.raises(ValueError):
            room_service.update_room_type(deluxe_type.id, RoomTypeUpdate(name="STANDARD"))

    def test_update_rate_keeps_existing_rooms(self, room_service, standard_type, room_101):
        room_type = room_service.update_room_type_rate(standard_type.id, "NGN", Decimal("22000"))
        assert room_type.rate_for("NGN") == 2200000
        assert room_service.get_room(room_101.id).rate_minor == 2000000

    def test_delete_with_rooms_requires_cascade(self, room_service, standard_type, room_101):
        with pytest.raises(ValueError, match="房间"):
            room_service.delete_room_type(standard_type.id)

    def test_cascade_delete(self, room_service, db_session, standard_type, room_101, room_102):
        room_service.delete_room_type(standard_type.id, cascade=True)

        assert db_session.query(RoomType).filter(RoomType.name == "Standard").first() is None
        assert db_session.query(Room).count() == 0

    def test_cascade_blocked_by_occupied_room(self, room_service, db_session,
                                              standard_type, checked_in):
        with pytest.raises(ValueError, match="入住中"):
            room_service.delete_room_type(standard_type.id, cascade=True)
        assert db_session.query(Room).count() == 1

    def test_delete_blocked_by_reservation(self, room_service, db_session, standard_type):
        db_session.add(Reservation(
            reservation_no="RES20990101001",
            guest_name="Future Guest",
            check_in_date=date.today(),
            check_out_date=date.today() + timedelta(days=1),
            room_type_id=standard_type.id,
            status=ReservationStatus.PENDING
        ))
        db_session.commit()

        with pytest.raises(ValueError, match="预订"):
            room_service.delete_room_type(standard_type.id, cascade=True)

    def test_delete_missing(self, room_service):
        with pytest.raises(NotFoundError):
            room_service.delete_room_type(99999)


class TestRooms:

    def test_create_room_defaults_to_base_rate(self, room_service, standard_type):
        room = room_service.create_room(RoomCreate(
            room_number="205B", floor=2, room_type_id=standard_type.id
        ))
        assert room.rate_minor == 2000000
        assert room.status == RoomStatus.VACANT

    def test_create_room_explicit_rate(self, room_service, standard_type):
        room = room_service.create_room(RoomCreate(
            room_number="301", floor=3, room_type_id=standard_type.id, rate=Decimal("18000")
        ))
        assert room.rate_minor == 1800000

    def test_duplicate_number(self, room_service, room_101):
        with pytest.raises(ValueError, match="已存在"):
            room_service.create_room(RoomCreate(
                room_number="101", room_type_id=room_101.room_type_id
            ))

    def test_cannot_deactivate_occupied(self, room_service, room_101, checked_in):
        with pytest.raises(ValueError):
            room_service.update_room(room_101.id, RoomUpdate(is_active=False))

    def test_update_rate(self, room_service, room_101):
        room = room_service.update_room(room_101.id, RoomUpdate(rate=Decimal("21000")))
        assert room.rate_minor == 2100000

    def test_delete_room(self, room_service, room_102):
        assert room_service.delete_room(room_102.id) is True
        assert room_service.get_room(room_102.id) is None

    def test_delete_occupied_room(self, room_service, room_101, checked_in):
        with pytest.raises(ValueError, match="入住中"):
            room_service.delete_room(room_101.id)

    def test_vacant_rooms(self, room_service, room_101, room_102, room_201, checked_in):
        numbers = [r.room_number for r in room_service.get_vacant_rooms()]
        assert numbers == ["102", "201"]

    def test_status_summary(self, room_service, room_101, room_102, checked_in):
        summary = room_service.get_room_status_summary()
        assert summary["total"] == 2
        assert summary["occupied"] == 1
        assert summary["vacant"] == 1


class TestRoomStatus:

    def test_housekeeping_cycle(self, room_service, room_102, published_events):
        room = room_service.update_room_status(room_102.id, RoomStatus.DIRTY)
        assert room.status == RoomStatus.DIRTY
        room = room_service.update_room_status(room_102.id, RoomStatus.CLEANING)
        room = room_service.update_room_status(room_102.id, RoomStatus.VACANT, notes="inspected")

        assert room.status == RoomStatus.VACANT
        assert room.status_notes == "inspected"
        assert [e.event_type for e in published_events] == [EventType.ROOM_STATUS_CHANGED] * 3

    def test_cannot_set_occupied(self, room_service, room_102):
        with pytest.raises(ValueError, match="办理入住"):
            room_service.update_room_status(room_102.id, RoomStatus.OCCUPIED)

    def test_cannot_change_occupied_room(self, room_service, room_101, checked_in):
        with pytest.raises(ValueError, match="退房"):
            room_service.update_room_status(room_101.id, RoomStatus.DIRTY)

    def test_cannot_attach_guest(self, room_service, room_102, sample_guest):
        with pytest.raises(ValueError):
            room_service.update_room_status(room_102.id, RoomStatus.DIRTY, guest_id=sample_guest.id)

    def test_out_of_order_requires_manager(self, room_service, room_102):
        room_service.update_room_status(room_102.id, RoomStatus.OUT_OF_ORDER, notes="leak")

        with pytest.raises(PermissionDeniedError):
            room_service.update_room_status(room_102.id, RoomStatus.VACANT)

        room = room_service.update_room_status(
            room_102.id, RoomStatus.VACANT, allow_out_of_order=True
        )
        assert room.status == RoomStatus.VACANT

    def test_missing_room(self, room_service):
        with pytest.raises(NotFoundError):
            room_service.update_room_status(99999, RoomStatus.DIRTY)
