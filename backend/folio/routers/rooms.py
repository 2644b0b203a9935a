"""
房间管理路由
房型、房间、房态
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from folio.database import get_db
from folio.models.ontology import Employee, RoomStatus
from folio.models.schemas import (
    RoomTypeCreate, RoomTypeUpdate, RoomTypeResponse, RoomTypeRateItem,
    RoomCreate, RoomUpdate, RoomResponse, RoomStatusUpdate
)
from folio.services.room_service import RoomService
from folio.services.serializers import room_type_to_dict, room_to_dict
from folio.security.auth import get_current_user, require_manager, require_housekeeping
from folio.routers.errors import http_error, require_confirm

router = APIRouter(prefix="/rooms", tags=["房间管理"])


# ============== 房型 ==============

@router.get("/types", response_model=List[RoomTypeResponse])
def list_room_types(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取所有房型"""
    service = RoomService(db)
    return [RoomTypeResponse(**room_type_to_dict(rt)) for rt in service.get_room_types()]


@router.post("/types", response_model=RoomTypeResponse)
def create_room_type(
    data: RoomTypeCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """创建房型"""
    service = RoomService(db)
    try:
        room_type = service.create_room_type(data, current_user.id)
        return RoomTypeResponse(**room_type_to_dict(room_type))
    except ValueError as e:
        raise http_error(e)


@router.get("/types/{room_type_id}", response_model=RoomTypeResponse)
def get_room_type(
    room_type_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取房型详情"""
    service = RoomService(db)
    room_type = service.get_room_type(room_type_id)
    if not room_type:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="房型不存在")
    return RoomTypeResponse(**room_type_to_dict(room_type))


@router.put("/types/{room_type_id}", response_model=RoomTypeResponse)
def update_room_type(
    room_type_id: int,
    data: RoomTypeUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """更新房型"""
    service = RoomService(db)
    try:
        room_type = service.update_room_type(room_type_id, data, current_user.id)
        return RoomTypeResponse(**room_type_to_dict(room_type))
    except ValueError as e:
        raise http_error(e)


@router.put("/types/{room_type_id}/rates", response_model=RoomTypeResponse)
def update_room_type_rate(
    room_type_id: int,
    data: RoomTypeRateItem,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """设置房型某币种价格"""
    service = RoomService(db)
    try:
        room_type = service.update_room_type_rate(
            room_type_id, data.currency, data.rate, current_user.id
        )
        return RoomTypeResponse(**room_type_to_dict(room_type))
    except ValueError as e:
        raise http_error(e)


@router.delete("/types/{room_type_id}")
def delete_room_type(
    room_type_id: int,
    cascade: bool = False,
    confirm: bool = False,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """删除房型；cascade=true 连同房间删除，需 confirm=true"""
    if cascade:
        require_confirm(confirm, "连同房间删除房型")
    service = RoomService(db)
    try:
        service.delete_room_type(room_type_id, cascade=cascade, operator_id=current_user.id)
        return {"message": "房型已删除"}
    except (ValueError, StaleDataError) as e:
        raise http_error(e)


# ============== 房态统计 ==============

@router.get("/summary")
def get_room_status_summary(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """房态统计"""
    service = RoomService(db)
    return service.get_room_status_summary()


@router.get("/vacant", response_model=List[RoomResponse])
def list_vacant_rooms(
    room_type_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取空闲可售房间"""
    service = RoomService(db)
    return [RoomResponse(**room_to_dict(r)) for r in service.get_vacant_rooms(room_type_id)]


# ============== 房间 ==============

@router.get("", response_model=List[RoomResponse])
def list_rooms(
    floor: Optional[int] = None,
    room_type_id: Optional[int] = None,
    status: Optional[RoomStatus] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取房间列表"""
    service = RoomService(db)
    rooms = service.get_rooms(floor, room_type_id, status, is_active)
    return [RoomResponse(**room_to_dict(r)) for r in rooms]


@router.post("", response_model=RoomResponse)
def create_room(
    data: RoomCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """创建房间"""
    service = RoomService(db)
    try:
        room = service.create_room(data, current_user.id)
        return RoomResponse(**room_to_dict(room))
    except ValueError as e:
        raise http_error(e)


@router.get("/{room_id}", response_model=RoomResponse)
def get_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取房间详情"""
    service = RoomService(db)
    room = service.get_room(room_id)
    if not room:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="房间不存在")
    return RoomResponse(**room_to_dict(room))


@router.put("/{room_id}", response_model=RoomResponse)
def update_room(
    room_id: int,
    data: RoomUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """更新房间信息"""
    service = RoomService(db)
    try:
        room = service.update_room(room_id, data, current_user.id)
        return RoomResponse(**room_to_dict(room))
    except (ValueError, StaleDataError) as e:
        raise http_error(e)


@router.delete("/{room_id}")
def delete_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """删除房间"""
    service = RoomService(db)
    try:
        service.delete_room(room_id, current_user.id)
        return {"message": "房间已删除"}
    except (ValueError, StaleDataError) as e:
        raise http_error(e)


@router.put("/{room_id}/status", response_model=RoomResponse)
def update_room_status(
    room_id: int,
    data: RoomStatusUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_housekeeping)
):
    """更新房态（清洁、维修等）"""
    service = RoomService(db)
    try:
        room = service.update_room_status(
            room_id, data.status, guest_id=data.guest_id, notes=data.notes,
            allow_out_of_order=current_user.is_manager, operator_id=current_user.id
        )
        return RoomResponse(**room_to_dict(room))
    except (ValueError, StaleDataError) as e:
        raise http_error(e)
