"""事务上下文

提供事务和保存点的上下文管理
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Dict, List

from sqlalchemy.orm import Session

from yorder.log import get_logger

from .state import TransactionState
from .propagation import TransactionPropagation
from .exceptions import (
    TransactionNotActiveError,
    TransactionAlreadyCommittedError,
)

logger = get_logger("yorder.orm.transaction")


class TransactionContext:
    """事务上下文
    
    管理单个事务的生命周期：
    - 事务状态跟踪
    - Savepoint 管理
    - 提交/回滚回调
    - 结束回调（无论提交还是回滚都会执行，用于释放分组锁）
    - 提交抑制（事务中 save(commit=True) 只做 flush）
    
    使用示例:
        with TransactionContext(session) as tx:
            item.save()
            
            with tx.savepoint():
                risky_operation()
            
            @tx.after_commit
            def on_committed(ctx):
                notify()
    """
    
    def __init__(
        self,
        session: Session,
        auto_commit: bool = True,
        propagation: TransactionPropagation = None,
        suppress_commit: bool = True
    ):
        self._session = session
        self._auto_commit = auto_commit
        self._propagation = propagation or TransactionPropagation.REQUIRED
        self._suppress_commit = suppress_commit
        self._state = TransactionState.INACTIVE
        self._nesting_level = 0
        self._savepoint_counter = 0
        
        self._after_commit: List[Callable] = []
        self._after_rollback: List[Callable] = []
        self._finalizers: List[Callable] = []
        
        # 上下文数据（用于在回调之间传递数据）
        self.data: Dict[str, Any] = {}
    
    # ==================== 属性 ====================
    
    @property
    def session(self) -> Session:
        return self._session
    
    @property
    def state(self) -> TransactionState:
        return self._state
    
    @property
    def is_active(self) -> bool:
        return self._state == TransactionState.ACTIVE
    
    @property
    def nesting_level(self) -> int:
        return self._nesting_level
    
    @property
    def propagation(self) -> TransactionPropagation:
        return self._propagation
    
    # ==================== 事务生命周期方法 ====================
    
    def begin(self) -> 'TransactionContext':
        """开始事务（SQLAlchemy autobegin，这里只切换状态）"""
        if self._state == TransactionState.ACTIVE:
            self._nesting_level += 1
            return self
        
        self._state = TransactionState.ACTIVE
        self._nesting_level = 1
        logger.debug("事务开始")
        return self
    
    def commit(self) -> None:
        """提交事务"""
        if self._state == TransactionState.COMMITTED:
            raise TransactionAlreadyCommittedError()
        if self._state != TransactionState.ACTIVE:
            raise TransactionNotActiveError(f"无法提交：事务状态为 {self._state.value}")
        
        try:
            self._session.commit()
        except Exception:
            self._state = TransactionState.FAILED
            raise
        
        self._state = TransactionState.COMMITTED
        self._nesting_level = 0
        logger.debug("事务提交成功")
        self._run_callbacks(self._after_commit, "after_commit")
    
    def rollback(self) -> None:
        """回滚事务（幂等）"""
        if self._state == TransactionState.COMMITTED:
            raise TransactionAlreadyCommittedError("无法回滚：事务已提交")
        if self._state in (TransactionState.ROLLED_BACK, TransactionState.INACTIVE):
            return
        
        try:
            self._session.rollback()
        except Exception as e:
            self._state = TransactionState.FAILED
            logger.error(f"事务回滚失败: {e}")
            raise
        
        self._state = TransactionState.ROLLED_BACK
        self._nesting_level = 0
        logger.debug("事务回滚成功")
        self._run_callbacks(self._after_rollback, "after_rollback")
    
    def flush(self) -> None:
        """刷新 session（将变更写入数据库但不提交）"""
        if not self.is_active:
            raise TransactionNotActiveError("无法刷新：事务未激活")
        self._session.flush()
    
    # ==================== Savepoint ====================
    
    @contextmanager
    def savepoint(self, name: str = None):
        """创建保存点，块内异常只回滚到保存点
        
        使用示例:
            with tx.savepoint("sp1"):
                risky_operation()
        """
        if not self.is_active:
            raise TransactionNotActiveError("无法创建保存点：事务未激活")
        
        if name is None:
            self._savepoint_counter += 1
            name = f"sp_{self._savepoint_counter}"
        
        nested = self._session.begin_nested()
        logger.debug(f"创建保存点: {name}")
        try:
            yield nested
        except Exception:
            if nested.is_active:
                nested.rollback()
            logger.debug(f"保存点 {name} 已回滚")
            raise
        else:
            if nested.is_active:
                nested.commit()
            logger.debug(f"保存点 {name} 已释放")
    
    # ==================== 提交抑制 ====================
    
    def should_suppress_commit(self) -> bool:
        """事务中 commit=True 是否应该被忽略"""
        return self.is_active and self._suppress_commit
    
    # ==================== 回调注册 ====================
    
    def after_commit(self, func: Callable) -> Callable:
        """注册提交后回调（装饰器方式），回调失败不影响已提交的事务"""
        self._after_commit.append(func)
        return func
    
    def after_rollback(self, func: Callable) -> Callable:
        """注册回滚后回调"""
        self._after_rollback.append(func)
        return func
    
    def on_finish(self, func: Callable) -> Callable:
        """注册结束回调：事务离开上下文时一定执行（提交、回滚或提交失败）"""
        self._finalizers.append(func)
        return func
    
    def _run_callbacks(self, callbacks: List[Callable], kind: str) -> None:
        for func in callbacks:
            try:
                func(self)
            except Exception as e:
                logger.warning(f"{kind} 回调 {getattr(func, '__name__', func)} 执行失败: {e}")
    
    def _run_finalizers(self) -> None:
        finalizers, self._finalizers = self._finalizers, []
        for func in reversed(finalizers):
            func(self)
    
    # ==================== 上下文管理器 ====================
    
    def __enter__(self) -> 'TransactionContext':
        return self.begin()
    
    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        try:
            if exc_type is not None:
                self.rollback()
                return False
            
            if self._auto_commit and self._state == TransactionState.ACTIVE:
                try:
                    self.commit()
                except Exception:
                    self.rollback()
                    raise
            return False
        finally:
            self._run_finalizers()
    
    def __repr__(self) -> str:
        return (
            f"TransactionContext("
            f"state={self._state.value}, "
            f"nesting_level={self._nesting_level})"
        )
