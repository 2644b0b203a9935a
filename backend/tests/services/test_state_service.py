"""
状态版本与税费设置服务测试
"""
import pytest
from decimal import Decimal

from folio.models.events import EventType
from folio.models.ontology import StateVersion, TaxSettings, TaxComponent
from folio.models.schemas import TaxSettingsUpdate, TaxComponentCreate, TaxComponentUpdate
from folio.services.errors import VersionConflictError, NotFoundError
from folio.services.settings_service import SettingsService
from folio.services.state_service import StateService


class TestStateVersion:

    def test_initial_version(self, db_session):
        assert StateService(db_session).current_version() == 0

    def test_bump(self, db_session):
        service = StateService(db_session)
        assert service.bump() == 1
        assert service.bump() == 2
        db_session.commit()
        assert service.current_version() == 2

    def test_row_created_when_missing(self, db_session):
        db_session.query(StateVersion).delete()
        db_session.commit()

        assert StateService(db_session).current_version() == 0

    def test_assert_version(self, db_session):
        service = StateService(db_session)
        service.assert_version(None)
        service.assert_version(0)
        with pytest.raises(VersionConflictError):
            service.assert_version(3)

    def test_rollback_discards_bump(self, db_session):
        service = StateService(db_session)
        service.bump()
        db_session.rollback()
        assert service.current_version() == 0

    def test_snapshot_shape(self, db_session, room_101, checked_in):
        snapshot = StateService(db_session).get_snapshot()
        assert set(snapshot) == {
            "version", "rooms", "guests", "reservations", "transactions",
            "loyalty_transactions", "tax_settings",
        }
        assert snapshot["rooms"][0]["guest_name"] == "Ada Obi"


class TestTaxSettings:

    def test_defaults(self, db_session):
        tax = SettingsService(db_session).get_tax_settings()
        assert tax.is_enabled is True
        assert len(tax.components) == 1
        vat = tax.components[0]
        assert vat.name == "VAT"
        assert Decimal(str(vat.rate)) == Decimal("7.5")
        assert vat.is_inclusive is False
        assert vat.is_active is True
        assert vat.show_on_receipt is True

    def test_toggle(self, db_session, publisher, published_events):
        service = SettingsService(db_session, event_publisher=publisher)
        tax = service.update_tax_settings(TaxSettingsUpdate(is_enabled=False))

        assert tax.is_enabled is False
        assert StateService(db_session).current_version() == 1
        assert published_events[-1].event_type == EventType.TAX_SETTINGS_UPDATED
        assert published_events[-1].data["action"] == "update_tax_settings"

    def test_add_component(self, db_session, publisher, published_events):
        service = SettingsService(db_session, event_publisher=publisher)
        levy = service.add_component(TaxComponentCreate(name="Tourism Levy", rate=Decimal("5")))

        assert levy.id is not None
        assert [c.name for c in service.get_tax_settings().components] == ["VAT", "Tourism Levy"]
        assert published_events[-1].data["component_name"] == "Tourism Levy"

    def test_update_component(self, db_session):
        service = SettingsService(db_session)
        vat = service.get_tax_settings().components[0]
        updated = service.update_component(
            vat.id, TaxComponentUpdate(rate=Decimal("10"), is_inclusive=True)
        )

        assert Decimal(str(updated.rate)) == Decimal("10")
        assert updated.is_inclusive is True
        assert updated.name == "VAT"

    def test_delete_component(self, db_session):
        service = SettingsService(db_session)
        vat = service.get_tax_settings().components[0]
        service.delete_component(vat.id)

        assert service.get_tax_settings().components == []
        assert db_session.query(TaxComponent).count() == 0

    def test_missing_component(self, db_session):
        with pytest.raises(NotFoundError):
            SettingsService(db_session).update_component(999, TaxComponentUpdate(rate=Decimal("1")))

    def test_row_created_when_missing(self, db_session):
        db_session.query(TaxComponent).delete()
        db_session.query(TaxSettings).delete()
        db_session.commit()

        tax = SettingsService(db_session).get_tax_settings()
        assert tax.id == 1
        assert tax.components[0].name == "VAT"
