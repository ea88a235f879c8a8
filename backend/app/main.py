"""
酒店预订后端主应用入口
房间预订（含自动顺延）、证件审核、支付、服务预订、站内通知
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.config import settings
from app.database import init_db
from app.routers import bookings, admin, service_bookings, payments, notifications
from core.errors import BookingError, ErrorType

logger = logging.getLogger(__name__)

# 业务异常 -> HTTP 状态码
ERROR_STATUS_CODES = {
    ErrorType.VALIDATION_ERROR: 400,
    ErrorType.NOT_FOUND: 404,
    ErrorType.PERMISSION_DENIED: 403,
    ErrorType.CONFLICT: 409,
    ErrorType.DEPENDENCY_ERROR: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # 初始化数据库
    init_db()

    # 注册事件处理器
    from app.services.event_handlers import register_event_handlers
    register_event_handlers()

    logger.info(f"{settings.APP_NAME} started")
    yield


# 创建应用
app = FastAPI(
    title=settings.APP_NAME,
    description="酒店预订后端：房间预订、证件审核、支付与服务预订",
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


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    status_code = ERROR_STATUS_CODES.get(exc.error_type, 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}",
                     exc_info=exc.__cause__ is not None)
        return JSONResponse(
            status_code=status_code,
            content={"detail": "Internal server error", "error_type": exc.error_type},
        )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# 注册路由
app.include_router(bookings.router)
app.include_router(admin.router)
app.include_router(service_bookings.router)
app.include_router(payments.router)
app.include_router(notifications.router)


@app.get("/")
def root():
    """根路径"""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
    }


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
