"""事务重试装饰器

序号引擎本身不做重试；需要自动重试的调用方用此装饰器包住整段业务，
遇到并发冲突时整体回滚并重新执行。
"""

import time
from functools import wraps
from typing import Callable, Tuple, Type, TypeVar

from sqlalchemy.exc import OperationalError

from yorder.exceptions import TransactionConflict
from yorder.log import get_logger

logger = get_logger("yorder.orm.transaction")

T = TypeVar('T')


def transaction_with_retry(
    max_retries: int = 3,
    retry_delay: float = 0.1,
    retry_on: Tuple[Type[Exception], ...] = (TransactionConflict, OperationalError),
    backoff_multiplier: float = 2.0,
    max_delay: float = 10.0
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """带重试机制的事务装饰器
    
    Args:
        max_retries: 最大重试次数（不包括首次尝试）
        retry_delay: 初始重试间隔（秒）
        retry_on: 需要重试的异常类型
        backoff_multiplier: 退避乘数
        max_delay: 最大延迟时间（秒）
    
    使用示例:
        @transaction_with_retry(max_retries=3)
        def promote(item_id):
            item = PlaylistItem.get(item_id)
            item.decrement_order()
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            from .manager import transaction_manager
            
            current_delay = retry_delay
            for attempt in range(max_retries + 1):
                try:
                    with transaction_manager.transaction():
                        return func(*args, **kwargs)
                except retry_on as e:
                    if attempt >= max_retries:
                        logger.error(
                            f"事务重试 {max_retries} 次后仍失败. "
                            f"异常: {type(e).__name__}: {e}"
                        )
                        raise
                    
                    actual_delay = min(current_delay, max_delay)
                    logger.warning(
                        f"事务执行失败 (尝试 {attempt + 1}/{max_retries + 1}), "
                        f"{actual_delay:.2f}s 后重试. "
                        f"异常: {type(e).__name__}: {e}"
                    )
                    time.sleep(actual_delay)
                    current_delay *= backoff_multiplier
            
            raise RuntimeError("Unexpected state in transaction_with_retry")
        
        return wrapper
    
    return decorator
