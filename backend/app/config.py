"""
应用配置
从环境变量 / .env 读取，启动时构造一次，通过构造函数注入各服务
"""
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用设置"""

    # 应用基础配置
    APP_NAME: str = "Hotel Booking Backend"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./hotel.db"

    # JWT 配置（令牌由外部认证服务签发，这里只校验）
    SECRET_KEY: str = "supersecretjwtkey"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120

    # 可用性搜索
    AVAILABILITY_MAX_ROUNDS: int = 50
    # 写入后复查发现重叠时的重新搜索次数
    BOOKING_CREATE_RETRIES: int = 3

    # 支付网关 (Razorpay 兼容)
    PAYMENT_CURRENCY: str = "INR"
    RAZORPAY_KEY_ID: Optional[str] = None
    RAZORPAY_KEY_SECRET: Optional[str] = None
    RAZORPAY_BASE_URL: str = "https://api.razorpay.com"
    PAYMENT_GATEWAY_TIMEOUT: float = 10.0

    model_config = ConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


# 全局设置实例
settings = Settings()


def get_settings() -> Settings:
    """依赖注入：获取设置"""
    return settings
