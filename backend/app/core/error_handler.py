"""
统一错误处理框架
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorType(Enum):
    """错误类型"""

    VALIDATION_ERROR = "validation_error"
    AUTHENTICATION_ERROR = "authentication_error"
    CONFLICT_ERROR = "conflict_error"
    STORAGE_ERROR = "storage_error"


class ErrorSeverity(Enum):
    """错误严重程度"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """错误上下文信息"""

    user_id: Optional[int] = None
    symbol: Optional[str] = None
    request_id: Optional[str] = None
    additional_data: Optional[Dict[str, Any]] = None


# 错误类型到HTTP状态码的映射
HTTP_STATUS_BY_TYPE = {
    ErrorType.VALIDATION_ERROR: 400,
    ErrorType.CONFLICT_ERROR: 400,
    ErrorType.AUTHENTICATION_ERROR: 401,
    ErrorType.STORAGE_ERROR: 500,
}


class BaseError(Exception):
    """基础错误类"""

    def __init__(
        self,
        message: str,
        error_type: ErrorType,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[ErrorContext] = None,
        original_exception: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.severity = severity
        self.context = context or ErrorContext()
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)
        self.error_id = f"{error_type.value}_{int(self.timestamp.timestamp())}"

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_TYPE.get(self.error_type, 500)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_id": self.error_id,
            "message": self.message,
            "error_type": self.error_type.value,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "context": {
                "user_id": self.context.user_id,
                "symbol": self.context.symbol,
                "request_id": self.context.request_id,
                "additional_data": self.context.additional_data,
            },
            "original_exception": str(self.original_exception)
            if self.original_exception
            else None,
        }


class ValidationError(BaseError):
    """验证相关错误"""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorType.VALIDATION_ERROR, **kwargs)


class AuthenticationError(BaseError):
    """认证相关错误"""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorType.AUTHENTICATION_ERROR, **kwargs)


class ConflictError(BaseError):
    """资源冲突（如用户名已存在）"""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorType.CONFLICT_ERROR, **kwargs)


class StorageError(BaseError):
    """数据库读写错误"""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorType.STORAGE_ERROR, **kwargs)
