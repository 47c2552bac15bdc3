"""ID模型基类

提供声明基类和整数自增主键。记录的 id 在存储内唯一且不可变，
序号引擎依赖它在交换时排除记录自身。
"""

from __future__ import annotations

from sqlalchemy import Integer
from sqlalchemy.orm import declarative_base, Mapped, mapped_column


# 声明基类
Base = declarative_base()


class IdModel(Base):
    """ID模型基类
    
    一般情况下应该使用 CoreModel，而不是直接使用 IdModel。
    """
    __abstract__ = True
    
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="主键ID"
    )
