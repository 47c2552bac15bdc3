"""业务异常类定义

定义序号引擎使用的异常类体系。
"""

import copy
from enum import Enum
from typing import Optional, List, Any, Dict, Union

from fastapi import status


class ErrorCode(str, Enum):
    """错误代码枚举
    
    继承自 str，可以直接作为字符串使用。
    
    使用示例:
        try:
            item.increment_order()
        except OrdinalError as e:
            if e.code == ErrorCode.TRANSACTION_CONFLICT:
                retry_later()
    """
    
    # ==================== 通用错误 ====================
    BUSINESS_ERROR = "BUSINESS_ERROR"
    OPERATION_FAILED = "OPERATION_FAILED"
    
    # ==================== 参数相关 (400) ====================
    INVALID_POSITION = "INVALID_POSITION"
    GROUP_MISMATCH = "GROUP_MISMATCH"
    
    # ==================== 冲突相关 (409) ====================
    TRANSACTION_CONFLICT = "TRANSACTION_CONFLICT"
    LOCK_TIMEOUT = "LOCK_TIMEOUT"
    VERSION_CONFLICT = "VERSION_CONFLICT"
    
    # ==================== 数据相关 (500) ====================
    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"
    
    # ==================== 服务相关 (503) ====================
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


# 类型别名，支持枚举和字符串
ErrorCodeType = Union[str, ErrorCode]


class BusinessException(Exception):
    """业务异常基类

    属性:
        message: 错误消息
        code: 错误代码（ErrorCode 枚举或字符串）
        status_code: 对应的 HTTP 状态码，供上层接口层转换响应
        details: 详细错误信息列表
        extra: 额外的上下文信息
    """

    def __init__(
        self,
        message: str,
        code: ErrorCodeType = ErrorCode.BUSINESS_ERROR,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or []
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
            # 返回深拷贝，避免调用方修改返回值反向污染异常对象内部状态
            "details": copy.deepcopy(self.details),
            "extra": copy.deepcopy(self.extra)
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"status_code={self.status_code})"
        )


class OrdinalError(BusinessException):
    """序号引擎异常基类

    引擎抛出的所有异常都继承此类，调用方可以统一捕获。
    """
    pass


class StoreUnavailable(OrdinalError):
    """存储不可用

    无法连接存储或无法开启原子操作时抛出，引擎不做重试。

    使用示例:
        raise StoreUnavailable("数据库连接失败", store="PlaylistItem")
    """

    def __init__(
        self,
        message: str = "存储暂时不可用",
        code: ErrorCodeType = ErrorCode.STORE_UNAVAILABLE,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details,
            **extra
        )


class TransactionConflict(OrdinalError):
    """事务冲突

    并发修改导致原子操作无法提交（锁等待超时、版本冲突、唯一约束冲突等）。
    是否重试由调用方决定，可配合 transaction_with_retry 使用。
    """

    def __init__(
        self,
        message: str = "并发修改冲突，请重试",
        code: ErrorCodeType = ErrorCode.TRANSACTION_CONFLICT,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
            **extra
        )


class InvariantViolationDetected(OrdinalError):
    """序号不变式被破坏

    分组内的序号不再是连续的 1..N（断号、重号，或交换目标位置上没有/有多条记录）。
    引擎不会静默修复，发现即失败；需要修复时显式调用 normalize()。

    使用示例:
        raise InvariantViolationDetected(
            "位置 3 上存在 2 条记录",
            group="base",
            orders=[1, 2, 3, 3],
        )
    """

    def __init__(
        self,
        message: str = "分组序号已损坏",
        code: ErrorCodeType = ErrorCode.INVARIANT_VIOLATION,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
            **extra
        )


class InvalidPositionError(OrdinalError):
    """无效的位置参数

    目标位置越界，或者对不同分组的两条记录执行交换时抛出。
    """

    def __init__(
        self,
        message: str = "无效的排序位置",
        code: ErrorCodeType = ErrorCode.INVALID_POSITION,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
            **extra
        )


class Err:
    """异常快捷创建类
    
    使用示例:
        from yorder.exceptions import Err
        
        raise Err.unavailable("数据库连接失败")
        raise Err.conflict("分组锁等待超时", code=ErrorCode.LOCK_TIMEOUT)
        raise Err.corrupted("位置 2 上没有记录", group="base")
        raise Err.invalid("目标位置越界", position=9)
    """
    
    @staticmethod
    def unavailable(message: str = "存储暂时不可用", **kwargs) -> StoreUnavailable:
        """存储不可用 (503)"""
        return StoreUnavailable(message, **kwargs)
    
    @staticmethod
    def conflict(message: str = "并发修改冲突，请重试", **kwargs) -> TransactionConflict:
        """事务冲突 (409)"""
        return TransactionConflict(message, **kwargs)
    
    @staticmethod
    def corrupted(message: str = "分组序号已损坏", **kwargs) -> InvariantViolationDetected:
        """序号不变式被破坏 (500)"""
        return InvariantViolationDetected(message, **kwargs)
    
    @staticmethod
    def invalid(message: str = "无效的排序位置", **kwargs) -> InvalidPositionError:
        """无效的位置参数 (400)"""
        return InvalidPositionError(message, **kwargs)
    
    @staticmethod
    def fail(message: str = "操作失败", **kwargs) -> BusinessException:
        """通用业务异常 (400)"""
        return BusinessException(message, **kwargs)
