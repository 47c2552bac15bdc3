"""事务管理模块

提供事务管理功能：
- 事务传播行为（REQUIRED, REQUIRES_NEW, NESTED, MANDATORY）
- 嵌套事务（Savepoint）
- 提交/回滚/结束回调
- 提交抑制（事务上下文中自动忽略 commit=True）
- 调用方重试装饰器

使用示例:
    from yorder.orm import transaction_manager as tm
    
    with tm.transaction() as tx:
        item.increment_order()
        other.decrement_order()
        # 两次交换一起提交或一起回滚
"""

from .state import TransactionState
from .exceptions import (
    TransactionError,
    TransactionNotActiveError,
    TransactionAlreadyCommittedError,
    PropagationError,
)
from .propagation import TransactionPropagation
from .context import TransactionContext
from .manager import (
    TransactionManager,
    transaction_manager,
    get_current_transaction,
)
from .retry import transaction_with_retry

__all__ = [
    "TransactionState",
    "TransactionError",
    "TransactionNotActiveError",
    "TransactionAlreadyCommittedError",
    "PropagationError",
    "TransactionPropagation",
    "TransactionContext",
    "TransactionManager",
    "transaction_manager",
    "get_current_transaction",
    "transaction_with_retry",
]
