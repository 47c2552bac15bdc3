"""yorder - 分组序号管理

基于 SQLAlchemy 的序号引擎：在每个分组内维护连续的 1..N 序号，
支持上移/下移、边界查询、创建时分配序号以及并发安全的原子交换。

子模块:
    - yorder.orm: 模型基类、会话、事务、序号引擎
    - yorder.log: 日志
    - yorder.config: 配置
    - yorder.exceptions: 异常
"""

__version__ = "0.1.0"

from .exceptions import (
    BusinessException,
    OrdinalError,
    StoreUnavailable,
    TransactionConflict,
    InvariantViolationDetected,
    InvalidPositionError,
)
from .orm import (
    CoreModel,
    OrdinalEngine,
    OrdinalFieldMixin,
    OrdinalMixin,
    init_database,
)

__all__ = [
    "__version__",
    "BusinessException",
    "OrdinalError",
    "StoreUnavailable",
    "TransactionConflict",
    "InvariantViolationDetected",
    "InvalidPositionError",
    "CoreModel",
    "OrdinalEngine",
    "OrdinalFieldMixin",
    "OrdinalMixin",
    "init_database",
]
