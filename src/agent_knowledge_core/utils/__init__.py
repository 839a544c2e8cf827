"""
工具模块 - 通用工具函数

提供文件校验、配置管理等通用工具
"""

from .file_utils import *
from .config_utils import *

__all__ = [
    "KnowledgeSettings",
    "load_settings",
    "read_config",
    "setup_logging",
    "detect_content_type",
    "normalize_url",
    "get_supported_file_types",
]
