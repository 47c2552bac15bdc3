"""引擎注册表

按模型类缓存 OrdinalEngine，并提供全局的序号配置。
"""

import threading
from typing import Dict, Optional

from yorder.config import OrderingSettings

from .engine import OrdinalEngine
from .stores.orm import SQLAlchemyRecordStore

_settings: Optional[OrderingSettings] = None
_engines: Dict[type, OrdinalEngine] = {}
_lock = threading.Lock()


def get_ordering_settings() -> OrderingSettings:
    """当前序号配置，未配置时从环境变量（YORDER_ORDER_*）读取"""
    global _settings
    with _lock:
        if _settings is None:
            _settings = OrderingSettings()
        return _settings


def configure_ordering(settings: OrderingSettings = None, **overrides) -> OrderingSettings:
    """设置序号配置，已缓存的引擎会被清空并按新配置重建
    
    使用示例:
        configure_ordering(settings.ordering)
        configure_ordering(lock_timeout=3, check_integrity_after_write=True)
    """
    global _settings
    settings = settings or OrderingSettings()
    if overrides:
        settings = settings.model_copy(update=overrides)
    with _lock:
        _settings = settings
        _engines.clear()
    return settings


def get_ordinal_engine(model_cls: type) -> OrdinalEngine:
    """获取模型类对应的引擎（按类缓存）"""
    engine = _engines.get(model_cls)
    if engine is not None:
        return engine
    
    settings = get_ordering_settings()
    with _lock:
        engine = _engines.get(model_cls)
        if engine is None:
            store = SQLAlchemyRecordStore(
                model_cls,
                field_name=getattr(model_cls, "__ordinal_field__", None) or settings.field_name,
                lock_timeout=settings.lock_timeout,
            )
            engine = _engines[model_cls] = OrdinalEngine(
                store,
                check_integrity_after_write=settings.check_integrity_after_write,
            )
        return engine


def reset_ordinal_engines() -> None:
    """清空引擎缓存（测试中切换数据库后使用）"""
    with _lock:
        _engines.clear()


__all__ = [
    "get_ordering_settings",
    "configure_ordering",
    "get_ordinal_engine",
    "reset_ordinal_engines",
]
