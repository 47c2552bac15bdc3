"""通用工具函数

提供命名转换、文件大小解析等与业务无关的辅助函数。
"""

import re
from typing import Union


# 文件大小单位（字节）
SIZE_UNITS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024 ** 2,
    "GB": 1024 ** 3,
}


def to_snake_case(name: str) -> str:
    """驼峰命名转下划线命名（支持连续大写缩写如 API、URL）
    
    Examples:
        >>> to_snake_case("PlaylistItem")
        'playlist_item'
        >>> to_snake_case("APIMenu")
        'api_menu'
    """
    result = re.sub(r'([A-Z\d]+)([A-Z][a-z])', r'\1_\2', name)
    result = re.sub(r'([a-z])([A-Z])', r'\1_\2', result)
    return result.lower()


def parse_file_size(size: Union[str, int, float]) -> int:
    """解析文件大小字符串为字节数
    
    Args:
        size: 如 "10MB"、"512KB"、"1.5GB"，也可以直接传入字节数
        
    Returns:
        字节数
        
    Raises:
        ValueError: 格式无效
    """
    if isinstance(size, (int, float)):
        return int(size)
    
    text = str(size).strip().upper()
    if not text:
        raise ValueError("文件大小字符串不能为空")
    
    match = re.fullmatch(r"([\d.]+)\s*([KMG]?B?)", text)
    if match is None:
        raise ValueError(f"无效的文件大小格式: {size}")
    
    number, unit = match.groups()
    if not unit:
        unit = "B"
    elif not unit.endswith("B"):
        unit += "B"
    
    try:
        return int(float(number) * SIZE_UNITS[unit])
    except ValueError:
        raise ValueError(f"无效的文件大小格式: {size}")


__all__ = [
    "to_snake_case",
    "parse_file_size",
]
