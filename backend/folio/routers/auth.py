"""
认证路由
操作员登录与当前操作员信息
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from folio.database import get_db
from folio.models.schemas import LoginRequest, LoginResponse, OperatorResponse
from folio.models.ontology import Employee
from folio.services.employee_service import EmployeeService, operator_info
from folio.services.errors import AuthenticationError
from folio.security.auth import get_current_user
from folio.routers.errors import http_error

router = APIRouter(prefix="/auth", tags=["认证"])


@router.post("/login", response_model=LoginResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """登录，返回访问令牌和操作员可执行的操作类别"""
    try:
        return EmployeeService(db).authenticate(data.username, data.password)
    except AuthenticationError as e:
        raise http_error(e)


@router.get("/me", response_model=OperatorResponse)
def get_current_operator(current_user: Employee = Depends(get_current_user)):
    """当前操作员"""
    return operator_info(current_user)
