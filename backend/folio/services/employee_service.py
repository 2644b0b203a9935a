"""
员工服务
操作员登录与初始管理员账号
"""
from typing import Optional
import logging
from sqlalchemy.orm import Session
from folio.config import settings
from folio.models.ontology import Employee, EmployeeRole
from folio.security.auth import (
    get_password_hash, verify_password, create_access_token, capabilities_of
)
from folio.services.errors import AuthenticationError

logger = logging.getLogger(__name__)


def operator_info(employee: Employee) -> dict:
    """操作员信息（含可执行的操作类别）"""
    return {
        "id": employee.id,
        "username": employee.username,
        "name": employee.name,
        "role": employee.role,
        "is_active": employee.is_active,
        "capabilities": capabilities_of(employee.role),
    }


class EmployeeService:
    """员工服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_employee(self, employee_id: int) -> Optional[Employee]:
        return self.db.query(Employee).filter(Employee.id == employee_id).first()

    def get_by_username(self, username: str) -> Optional[Employee]:
        return self.db.query(Employee).filter(Employee.username == username).first()

    def create_employee(self, username: str, password: str, name: str,
                        role: EmployeeRole) -> Employee:
        """创建员工"""
        if self.get_by_username(username):
            raise ValueError(f"账号 '{username}' 已存在")
        employee = Employee(
            username=username,
            password_hash=get_password_hash(password),
            name=name,
            role=role,
            is_active=True
        )
        self.db.add(employee)
        self.db.commit()
        self.db.refresh(employee)
        return employee

    def authenticate(self, username: str, password: str) -> dict:
        """
        登录验证，成功返回 token 与操作员信息
        账号不存在和密码错误返回同一提示
        """
        employee = self.get_by_username(username)
        if not employee or not verify_password(password, employee.password_hash):
            logger.warning(f"Failed login for '{username}'")
            raise AuthenticationError("用户名或密码错误")
        if not employee.is_active:
            raise AuthenticationError("账号已停用")

        return {
            "access_token": create_access_token(employee.id, employee.role),
            "token_type": "bearer",
            "employee": operator_info(employee),
        }

    def ensure_bootstrap_admin(self) -> Optional[Employee]:
        """没有任何员工时创建初始管理员"""
        if self.db.query(Employee).count() > 0:
            return None
        logger.info(f"Creating bootstrap admin '{settings.BOOTSTRAP_ADMIN_USERNAME}'")
        return self.create_employee(
            settings.BOOTSTRAP_ADMIN_USERNAME,
            settings.BOOTSTRAP_ADMIN_PASSWORD,
            "系统管理员",
            EmployeeRole.ADMIN
        )
