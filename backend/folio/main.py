"""
Folio Ledger 主应用入口
酒店客人账务与房态生命周期服务
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from folio.config import settings
from folio.database import init_db, SessionLocal
from folio.routers import (
    auth, folio, transactions, rooms, reservations, guests, loyalty,
    settings as settings_router, state, audit_logs
)

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 初始化数据库
    init_db()

    # 初始管理员
    from folio.services.employee_service import EmployeeService
    db = SessionLocal()
    try:
        EmployeeService(db).ensure_bootstrap_admin()
    finally:
        db.close()

    # 注册事件处理器
    from folio.services.event_handlers import register_event_handlers
    register_event_handlers()

    logger.info(f"{settings.APP_NAME} started")
    yield


# 创建应用
app = FastAPI(
    title=settings.APP_NAME,
    description="酒店客人账务与房态生命周期服务",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应限制具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(auth.router)
app.include_router(folio.router)
app.include_router(transactions.router)
app.include_router(rooms.router)
app.include_router(reservations.router)
app.include_router(guests.router)
app.include_router(loyalty.router)
app.include_router(settings_router.router)
app.include_router(state.router)
app.include_router(audit_logs.router)


@app.get("/")
def root():
    """根路径"""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "description": "酒店客人账务与房态生命周期服务"
    }


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
