"""
应用配置
从环境变量 / .env 读取配置，覆盖账务、税率、积分等级等业务参数
"""
from decimal import Decimal
from typing import List
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用设置"""

    # 应用基础配置
    APP_NAME: str = "Folio Ledger"
    DEBUG: bool = False

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./folio.db"

    # JWT 配置
    SECRET_KEY: str = "folio-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    # 币种配置：金额一律以最小货币单位（整数）存储
    BASE_CURRENCY: str = "NGN"
    SUPPORTED_CURRENCIES: List[str] = ["NGN", "USD"]

    # 默认税费项（首次初始化 tax_settings 时写入）
    DEFAULT_TAX_NAME: str = "VAT"
    DEFAULT_TAX_ENABLED: bool = True
    DEFAULT_TAX_RATE: Decimal = Decimal("7.5")
    DEFAULT_TAX_INCLUSIVE: bool = False

    # 积分等级门槛（按累计获得积分计算，兑换不降级）
    LOYALTY_SILVER_THRESHOLD: int = 1000
    LOYALTY_GOLD_THRESHOLD: int = 5000
    LOYALTY_PLATINUM_THRESHOLD: int = 10000

    # 初始管理员账号
    BOOTSTRAP_ADMIN_USERNAME: str = "admin"
    BOOTSTRAP_ADMIN_PASSWORD: str = "admin123"

    model_config = ConfigDict(env_file=".env", case_sensitive=True)


# 全局设置实例
settings = Settings()
