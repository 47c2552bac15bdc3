"""记录存储

- RecordStore: 存储抽象基类
- SQLAlchemyRecordStore: 基于 SQLAlchemy ORM 的存储
- MemoryRecordStore: 内存存储（测试、单进程）
"""

from .base import RecordStore
from .memory import MemoryRecordStore
from .orm import SQLAlchemyRecordStore, translate_errors

__all__ = [
    "RecordStore",
    "MemoryRecordStore",
    "SQLAlchemyRecordStore",
    "translate_errors",
]
