"""日志模块

提供日志配置与获取：
- get_logger: 按模块名获取日志记录器
- setup_logger / setup_root_logger: 控制台 + 轮转文件输出

使用示例:
    from yorder.log import get_logger, setup_root_logger
    
    setup_root_logger(level="DEBUG")
    logger = get_logger()
"""

from .logger import (
    setup_logger,
    setup_root_logger,
    create_formatter,
    MicrosecondFormatter,
    DEFAULT_LOG_FORMAT,
    orm_logger,
    transaction_logger,
    logger,
    get_logger,
)

__all__ = [
    "setup_logger",
    "setup_root_logger",
    "create_formatter",
    "MicrosecondFormatter",
    "DEFAULT_LOG_FORMAT",
    "orm_logger",
    "transaction_logger",
    "logger",
    "get_logger",
]
