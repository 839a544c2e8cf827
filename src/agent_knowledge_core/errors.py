"""
异常定义 - 知识库摄取跟踪过程中使用的错误类型
"""

from typing import Any, Dict, Optional


class KnowledgeError(Exception):
    """所有知识库错误的基类"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class DuplicateIdError(KnowledgeError):
    """条目ID已存在（注册表或批次误用）"""

    def __init__(self, item_id: str):
        super().__init__(f"Duplicate id: {item_id}", {"item_id": item_id})
        self.item_id = item_id


class UnknownJobError(KnowledgeError):
    """条目ID不存在"""

    def __init__(self, item_id: str):
        super().__init__(f"Unknown job: {item_id}", {"item_id": item_id})
        self.item_id = item_id


class ValidationError(KnowledgeError):
    """提交内容不合法，在创建任务之前同步拒绝"""


class PersistenceError(KnowledgeError):
    """快照写入失败，内存状态仍然有效"""


class SnapshotImportError(KnowledgeError):
    """导入源不可读或格式不匹配，目标保持不变"""
