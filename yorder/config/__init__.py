"""配置模块

提供配置管理功能：
- AppSettings: 应用配置聚合（database / logging / ordering）
- 子配置类: DatabaseSettings, LoggingSettings, OrderingSettings
- ConfigLoader / load_yaml_config: YAML 配置加载

快速开始:
    from yorder.config import AppSettings, load_yaml_config
    
    settings = load_yaml_config("config/settings.yaml", AppSettings)
"""

from .settings import (
    AppSettings,
    DatabaseSettings,
    LoggingSettings,
    OrderingSettings,
)

from .loader import (
    ConfigLoader,
    load_yaml_config,
)

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "OrderingSettings",
    "ConfigLoader",
    "load_yaml_config",
]
