"""
数据库配置 - SQLite 持久化层
所有业务写操作通过服务层完成，一个操作对应一个会话事务
"""
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base

from folio.config import settings

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False}
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """依赖注入：获取数据库会话"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def default_tax_settings():
    """默认税费设置：总开关加一个默认税费项"""
    from folio.models.ontology import TaxSettings, TaxComponent

    tax = TaxSettings(id=1, is_enabled=settings.DEFAULT_TAX_ENABLED)
    tax.components.append(TaxComponent(
        name=settings.DEFAULT_TAX_NAME,
        rate=settings.DEFAULT_TAX_RATE,
        is_inclusive=settings.DEFAULT_TAX_INCLUSIVE,
        show_on_receipt=True,
        is_active=True
    ))
    return tax


def seed_singletons(db) -> None:
    """写入单行配置表（税费设置、状态版本号），已存在则跳过"""
    from folio.models.ontology import TaxSettings, StateVersion

    if db.query(TaxSettings).first() is None:
        db.add(default_tax_settings())
    if db.query(StateVersion).first() is None:
        db.add(StateVersion(id=1, version=0))
    db.commit()


def init_db():
    """初始化数据库表"""
    from folio.models import ontology  # noqa
    Base.metadata.create_all(bind=engine)

    if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
        # 启用 WAL 模式以提高并发性能
        with engine.connect() as conn:
            conn.execute(text("PRAGMA journal_mode=WAL"))
            conn.execute(text("PRAGMA synchronous=NORMAL"))
            conn.commit()

    db = SessionLocal()
    try:
        seed_singletons(db)
    finally:
        db.close()
