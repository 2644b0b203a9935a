"""
税费设置服务
单行配置表（总开关）加税费项，修改只影响此后的入账
"""
from typing import Callable, Optional
from datetime import datetime
from sqlalchemy.orm import Session
from folio.database import default_tax_settings
from folio.models.ontology import TaxSettings, TaxComponent
from folio.models.schemas import TaxSettingsUpdate, TaxComponentCreate, TaxComponentUpdate
from folio.models.events import EventType, TaxSettingsChangedData
from folio.services.event_bus import event_bus, Event
from folio.services.audit_service import AuditService
from folio.services.errors import NotFoundError
from folio.services.locks import lock_registry


def _component_values(component: TaxComponent) -> dict:
    return {
        "name": component.name,
        "rate": str(component.rate),
        "is_inclusive": component.is_inclusive,
        "show_on_receipt": component.show_on_receipt,
        "is_active": component.is_active,
    }


class SettingsService:
    """税费设置服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        self._publish_event = event_publisher or event_bus.publish

    def get_tax_settings(self) -> TaxSettings:
        tax = self.db.query(TaxSettings).filter(TaxSettings.id == 1).first()
        if tax is None:
            tax = default_tax_settings()
            self.db.add(tax)
            self.db.flush()
        return tax

    def get_component(self, component_id: int) -> TaxComponent:
        component = self.db.query(TaxComponent).filter(TaxComponent.id == component_id).first()
        if not component:
            raise NotFoundError("税费项不存在")
        return component

    def _commit(self, tax: TaxSettings, operator_id: Optional[int] = None, **audit) -> int:
        from folio.services.state_service import StateService

        tax.updated_by = operator_id
        AuditService(self.db).create_log(
            entity_type="tax_settings", operator_id=operator_id, **audit
        )
        version = StateService(self.db).bump()
        self.db.commit()
        return version

    def _publish(self, action: str, version: int, is_enabled: bool,
                 component_id: Optional[int] = None, component_name: str = "",
                 operator_id: Optional[int] = None) -> None:
        self._publish_event(Event(
            event_type=EventType.TAX_SETTINGS_UPDATED,
            timestamp=datetime.now(),
            data=TaxSettingsChangedData(
                state_version=version,
                action=action,
                is_enabled=is_enabled,
                component_id=component_id,
                component_name=component_name,
                operator_id=operator_id
            ).to_dict(),
            source="settings_service"
        ))

    def update_tax_settings(self, data: TaxSettingsUpdate, operator_id: int = None) -> TaxSettings:
        """切换税费总开关"""
        with lock_registry.hold():
            try:
                tax = self.get_tax_settings()
                old_enabled = tax.is_enabled
                if data.is_enabled is not None:
                    tax.is_enabled = data.is_enabled
                version = self._commit(
                    tax, operator_id,
                    action="update_tax_settings",
                    entity_id=tax.id,
                    old_value={"is_enabled": old_enabled},
                    new_value={"is_enabled": tax.is_enabled}
                )
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(tax)

        self._publish("update_tax_settings", version, tax.is_enabled, operator_id=operator_id)
        return tax

    def add_component(self, data: TaxComponentCreate, operator_id: int = None) -> TaxComponent:
        """新增税费项"""
        with lock_registry.hold():
            try:
                tax = self.get_tax_settings()
                component = TaxComponent(**data.model_dump())
                tax.components.append(component)
                self.db.flush()
                version = self._commit(
                    tax, operator_id,
                    action="add_tax_component",
                    entity_id=component.id,
                    new_value=_component_values(component)
                )
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(component)

        self._publish("add_tax_component", version, tax.is_enabled,
                      component.id, component.name, operator_id)
        return component

    def update_component(self, component_id: int, data: TaxComponentUpdate,
                         operator_id: int = None) -> TaxComponent:
        """修改税费项（名称、税率、价内 / 价外、是否展示、是否启用）"""
        with lock_registry.hold():
            try:
                tax = self.get_tax_settings()
                component = self.get_component(component_id)
                old_value = _component_values(component)

                update_data = data.model_dump(exclude_unset=True)
                for key, value in update_data.items():
                    if value is not None:
                        setattr(component, key, value)
                version = self._commit(
                    tax, operator_id,
                    action="update_tax_component",
                    entity_id=component.id,
                    old_value=old_value,
                    new_value=_component_values(component)
                )
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(component)

        self._publish("update_tax_component", version, tax.is_enabled,
                      component.id, component.name, operator_id)
        return component

    def delete_component(self, component_id: int, operator_id: int = None) -> None:
        """删除税费项；已入账的税费账目不受影响"""
        with lock_registry.hold():
            try:
                tax = self.get_tax_settings()
                component = self.get_component(component_id)
                old_value = _component_values(component)
                tax.components.remove(component)
                self.db.flush()
                version = self._commit(
                    tax, operator_id,
                    action="delete_tax_component",
                    entity_id=component_id,
                    old_value=old_value
                )
            except Exception:
                self.db.rollback()
                raise

        self._publish("delete_tax_component", version, tax.is_enabled,
                      component_id, old_value["name"], operator_id)
