"""
系统设置路由
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from folio.database import get_db
from folio.models.ontology import Employee
from folio.models.schemas import (
    TaxSettingsResponse, TaxSettingsUpdate,
    TaxComponentCreate, TaxComponentUpdate, TaxComponentResponse
)
from folio.services.settings_service import SettingsService
from folio.security.auth import get_current_user, require_manager
from folio.routers.errors import http_error

router = APIRouter(prefix="/settings", tags=["系统设置"])


@router.get("/tax", response_model=TaxSettingsResponse)
def get_tax_settings(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取税费设置（总开关与全部税费项）"""
    return SettingsService(db).get_tax_settings()


@router.put("/tax", response_model=TaxSettingsResponse)
def update_tax_settings(
    data: TaxSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """切换税费总开关（只影响此后的入账）"""
    try:
        return SettingsService(db).update_tax_settings(data, current_user.id)
    except ValueError as e:
        raise http_error(e)


@router.post("/tax/components", response_model=TaxComponentResponse)
def add_tax_component(
    data: TaxComponentCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """新增税费项"""
    try:
        return SettingsService(db).add_component(data, current_user.id)
    except ValueError as e:
        raise http_error(e)


@router.put("/tax/components/{component_id}", response_model=TaxComponentResponse)
def update_tax_component(
    component_id: int,
    data: TaxComponentUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """修改税费项"""
    try:
        return SettingsService(db).update_component(component_id, data, current_user.id)
    except ValueError as e:
        raise http_error(e)


@router.delete("/tax/components/{component_id}")
def delete_tax_component(
    component_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """删除税费项"""
    try:
        SettingsService(db).delete_component(component_id, current_user.id)
    except ValueError as e:
        raise http_error(e)
    return {"message": "税费项已删除"}
