"""
core/errors.py

领域错误类型 - 每个请求内终止，不自动重试
HTTP 层按 error_type 映射状态码
"""
from typing import Any, Dict, Optional


class ErrorType:
    """错误分类"""

    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    CONFLICT = "conflict"
    DEPENDENCY_ERROR = "dependency_error"


class BookingError(Exception):
    """
    领域错误基类

    Attributes:
        error_type: 错误分类（ErrorType）
        message: 返回给调用方的说明
        context: 附加上下文（如 booking_id）
    """

    error_type = "unknown"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为可序列化字典"""
        result = {
            "detail": self.message,
            "error_type": self.error_type,
        }
        if self.context:
            result["context"] = self.context
        return result


class ValidationError(BookingError):
    """必填字段缺失或格式错误"""
    error_type = ErrorType.VALIDATION_ERROR


class NotFoundError(BookingError):
    """预订/房间/服务不存在"""
    error_type = ErrorType.NOT_FOUND


class AuthorizationError(BookingError):
    """非所有者或角色不符"""
    error_type = ErrorType.PERMISSION_DENIED


class ConflictError(BookingError):
    """非法状态转换"""
    error_type = ErrorType.CONFLICT


class DependencyError(BookingError):
    """存储或外部协作方不可用"""
    error_type = ErrorType.DEPENDENCY_ERROR


__all__ = [
    "ErrorType",
    "BookingError",
    "ValidationError",
    "NotFoundError",
    "AuthorizationError",
    "ConflictError",
    "DependencyError",
]
