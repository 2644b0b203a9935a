"""
初始化数据脚本
创建：房型（含分币种价格）、房间、员工

默认账号（密码均为 123456）：
  admin          系统管理员
  manager        经理
  front1         前台
  house1         客房
  accounts1      财务
"""
from decimal import Decimal
from folio.config import settings
from folio.database import SessionLocal, init_db
from folio.models.ontology import (
    RoomType, RoomTypeRate, Room, RoomStatus, Employee, EmployeeRole
)
from folio.security.auth import get_password_hash
from folio.services.rate_policy import to_minor


ROOM_TYPE_DEFS = [
    {'name': 'Standard', 'description': '标准间，双床或大床', 'max_occupancy': 2,
     'rates': {'NGN': Decimal('20000'), 'USD': Decimal('25')}},
    {'name': 'Deluxe', 'description': '豪华间，带休息区', 'max_occupancy': 2,
     'rates': {'NGN': Decimal('35000'), 'USD': Decimal('45')}},
    {'name': 'Suite', 'description': '套房，独立客厅', 'max_occupancy': 4,
     'rates': {'NGN': Decimal('60000'), 'USD': Decimal('80')}},
]

# 楼层 -> [(房间号, 房型名)]
ROOM_CONFIGS = {
    1: [(f'10{i}', 'Standard') for i in range(1, 7)] + [('107', 'Deluxe'), ('108', 'Deluxe')],
    2: [(f'20{i}', 'Standard') for i in range(1, 5)] + [(f'20{i}', 'Deluxe') for i in range(5, 8)]
       + [('208', 'Suite')],
    3: [('301', 'Deluxe'), ('302', 'Deluxe'), ('303', 'Suite'), ('304', 'Suite')],
}

EMPLOYEE_DEFS = [
    ('admin', '系统管理员', EmployeeRole.ADMIN),
    ('manager', '值班经理', EmployeeRole.MANAGER),
    ('front1', '前台一', EmployeeRole.RECEPTIONIST),
    ('house1', '客房一', EmployeeRole.HOUSEKEEPING),
    ('accounts1', '财务一', EmployeeRole.ACCOUNTS),
]


def init_room_types(db):
    """初始化房型"""
    rt_map = {}
    for rt_data in ROOM_TYPE_DEFS:
        existing = db.query(RoomType).filter(RoomType.name == rt_data['name']).first()
        if existing:
            rt_map[rt_data['name']] = existing
            continue
        rt = RoomType(
            name=rt_data['name'],
            description=rt_data['description'],
            max_occupancy=rt_data['max_occupancy']
        )
        rt.rates = [
            RoomTypeRate(currency=currency, rate_minor=to_minor(rate))
            for currency, rate in rt_data['rates'].items()
        ]
        db.add(rt)
        db.flush()
        rt_map[rt_data['name']] = rt
    db.commit()
    print(f"房型初始化完成: {len(rt_map)} 个")
    return rt_map


def init_rooms(db, rt_map):
    """初始化房间，房价取房型的基础币种价格"""
    created = 0
    for floor, configs in ROOM_CONFIGS.items():
        for num, type_name in configs:
            if db.query(Room).filter(Room.room_number == num).first():
                continue
            room_type = rt_map[type_name]
            db.add(Room(
                room_number=num,
                floor=floor,
                room_type_id=room_type.id,
                rate_minor=room_type.rate_for(settings.BASE_CURRENCY),
                status=RoomStatus.VACANT
            ))
            created += 1
    db.commit()
    print(f"房间初始化完成: {created} 间新建")


def init_employees(db):
    """初始化员工"""
    created = 0
    for username, name, role in EMPLOYEE_DEFS:
        if db.query(Employee).filter(Employee.username == username).first():
            continue
        db.add(Employee(
            username=username,
            password_hash=get_password_hash('123456'),
            name=name,
            role=role,
            is_active=True
        ))
        created += 1
    db.commit()
    print(f"员工初始化完成: {created} 个新建")


def main():
    """主函数"""
    print("=" * 50)
    print(f"{settings.APP_NAME} 初始化数据")
    print("=" * 50)

    init_db()
    print("数据库表创建完成")

    db = SessionLocal()
    try:
        rt_map = init_room_types(db)
        init_rooms(db, rt_map)
        init_employees(db)

        print("=" * 50)
        print("初始化完成！默认账号密码均为 123456：")
        for username, name, role in EMPLOYEE_DEFS:
            print(f"  {name}: {username} ({role.value})")
        print("=" * 50)
    finally:
        db.close()


if __name__ == '__main__':
    main()
