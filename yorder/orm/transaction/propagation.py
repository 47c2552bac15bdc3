"""事务传播行为

定义当原子操作在已有事务上下文中被调用时的行为
"""

from enum import Enum


class TransactionPropagation(str, Enum):
    """事务传播行为
    
    使用示例:
        with tm.transaction():
            # 序号引擎的原子操作默认 REQUIRED，加入外层事务，
            # 外层回滚时交换一起回滚
            item.increment_order()
    """
    
    REQUIRED = "required"
    """有事务则加入，没有则新建（默认）"""
    
    REQUIRES_NEW = "requires_new"
    """在现有事务中用 savepoint 隔离；没有事务则新建"""
    
    NESTED = "nested"
    """必须有外层事务，在其中创建 savepoint"""
    
    MANDATORY = "mandatory"
    """必须在事务中执行，否则抛出异常"""
