"""异常处理模块

使用示例:
    from yorder.exceptions import OrdinalError, TransactionConflict

    try:
        item.increment_order()
    except TransactionConflict:
        # 重试策略由调用方决定
        ...
"""

from .exceptions import (
    Err,
    ErrorCode,
    ErrorCodeType,
    BusinessException,
    OrdinalError,
    StoreUnavailable,
    TransactionConflict,
    InvariantViolationDetected,
    InvalidPositionError,
)

__all__ = [
    "Err",
    "ErrorCode",
    "ErrorCodeType",
    "BusinessException",
    "OrdinalError",
    "StoreUnavailable",
    "TransactionConflict",
    "InvariantViolationDetected",
    "InvalidPositionError",
]
