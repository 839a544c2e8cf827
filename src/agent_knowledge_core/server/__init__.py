"""
Server Module - 知识库控制器与提交校验
"""

from .controller import KnowledgeController
from .validation import SubmissionValidator
from .pool import ControllerPool

__all__ = [
    "KnowledgeController",
    "SubmissionValidator",
    "ControllerPool",
]
