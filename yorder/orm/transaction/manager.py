"""事务管理器

提供事务管理的统一入口
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from functools import wraps
from typing import Callable, Generator, Optional, TypeVar

from sqlalchemy.orm import Session

from yorder.log import get_logger

from .propagation import TransactionPropagation
from .context import TransactionContext
from .exceptions import PropagationError

logger = get_logger("yorder.orm.transaction")

T = TypeVar('T')

# 当前事务上下文（线程/协程隔离）
_current_transaction: ContextVar[Optional[TransactionContext]] = ContextVar(
    '_current_transaction', default=None
)


def get_current_transaction() -> Optional[TransactionContext]:
    """获取当前事务上下文，不在事务中返回 None"""
    return _current_transaction.get()


class TransactionManager:
    """事务管理器
    
    使用示例:
        from yorder.orm import transaction_manager as tm
        
        # 上下文管理器：块内的多次移动作为一个原子单元
        with tm.transaction() as tx:
            a.increment_order()
            b.decrement_order()
        
        # 装饰器
        @tm.transactional()
        def rebuild_menu(items):
            for item in items:
                item.move_to_bottom()
    """
    
    _instance = None
    
    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance
    
    def __init__(self):
        if self._initialized:
            return
        self._default_suppress_commit = True
        self._initialized = True
    
    def get_session(self) -> Session:
        """获取数据库 session"""
        from ..db_session import db_manager
        return db_manager.get_session()
    
    @property
    def current_transaction(self) -> Optional[TransactionContext]:
        return _current_transaction.get()
    
    def configure(self, suppress_commit_in_transaction: bool = None) -> None:
        """配置事务管理器"""
        if suppress_commit_in_transaction is not None:
            self._default_suppress_commit = suppress_commit_in_transaction
    
    @contextmanager
    def transaction(
        self,
        session: Session = None,
        propagation: TransactionPropagation = TransactionPropagation.REQUIRED,
        suppress_commit: bool = None
    ) -> Generator[TransactionContext, None, None]:
        """创建事务上下文
        
        Args:
            session: 数据库会话，不传则自动获取
            propagation: 事务传播行为
            suppress_commit: 是否抑制内部提交，None 则使用默认配置
        
        Yields:
            TransactionContext 对象（加入外层事务时返回外层上下文）
        """
        current = self.current_transaction
        joinable = current is not None and current.is_active
        
        if propagation == TransactionPropagation.MANDATORY and not joinable:
            raise PropagationError("MANDATORY", "必须在事务中执行")
        if propagation == TransactionPropagation.NESTED and not joinable:
            raise PropagationError("NESTED", "NESTED 需要一个活跃的外层事务")
        
        if joinable and propagation in (
            TransactionPropagation.REQUIRED,
            TransactionPropagation.MANDATORY,
        ):
            current._nesting_level += 1
            logger.debug(f"{propagation.value}: 加入现有事务 (level={current._nesting_level})")
            try:
                yield current
            finally:
                if current._nesting_level > 1:
                    current._nesting_level -= 1
            return
        
        if joinable:
            # REQUIRES_NEW / NESTED：用 savepoint 隔离
            logger.debug(f"{propagation.value}: 在现有事务中创建 savepoint")
            with current.savepoint():
                yield current
            return
        
        if session is None:
            session = self.get_session()
        if suppress_commit is None:
            suppress_commit = self._default_suppress_commit
        
        ctx = TransactionContext(
            session=session,
            propagation=propagation,
            suppress_commit=suppress_commit
        )
        token = _current_transaction.set(ctx)
        try:
            with ctx:
                yield ctx
        finally:
            _current_transaction.reset(token)
    
    def transactional(
        self,
        propagation: TransactionPropagation = TransactionPropagation.REQUIRED,
        suppress_commit: bool = None
    ):
        """事务装饰器
        
        使用示例:
            @tm.transactional()
            def reorder_playlist(items):
                for item in items:
                    item.decrement_order()
        """
        def decorator(func: Callable[..., T]) -> Callable[..., T]:
            @wraps(func)
            def wrapper(*args, **kwargs) -> T:
                with self.transaction(
                    propagation=propagation,
                    suppress_commit=suppress_commit
                ):
                    return func(*args, **kwargs)
            return wrapper
        
        return decorator
    
    def is_in_transaction(self) -> bool:
        """检查当前是否在事务中"""
        tx = self.current_transaction
        return tx is not None and tx.is_active


# 全局单例
transaction_manager = TransactionManager()
