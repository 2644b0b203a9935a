"""
业务异常 -> HTTP 异常
"""
from fastapi import HTTPException, status
from sqlalchemy.orm.exc import StaleDataError
from folio.services.errors import (
    AuthenticationError, NotFoundError, PermissionDeniedError, VersionConflictError
)


def http_error(e: Exception) -> HTTPException:
    """按异常类型映射状态码，未识别的 ValueError 为 400"""
    if isinstance(e, AuthenticationError):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"}
        )
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, PermissionDeniedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, VersionConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, StaleDataError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="数据已被其他操作修改，请刷新后重试"
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def require_confirm(confirm: bool, action: str) -> None:
    """破坏性操作需要显式 confirm=true"""
    if not confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{action}需要 confirm=true 确认"
        )
