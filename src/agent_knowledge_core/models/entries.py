"""
提交条目模型 - 每种知识来源的输入结构
"""

from typing import Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from .knowledge_item import KnowledgeKind


class BaseEntry(BaseModel):
    """提交条目基类"""
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    def display_name(self) -> str:
        raise NotImplementedError

    def to_metadata(self) -> Dict[str, object]:
        return self.model_dump(exclude_none=True)


class DocumentEntry(BaseEntry):
    filename: str
    size: int = Field(ge=0)
    content_type: Optional[str] = None

    def display_name(self) -> str:
        return self.filename


class WebPageEntry(BaseEntry):
    url: str
    title: Optional[str] = None
    page_count: int = Field(default=1, ge=1)

    def display_name(self) -> str:
        return self.title or self.url


class TextEntry(BaseEntry):
    content: str
    title: Optional[str] = None

    def display_name(self) -> str:
        if self.title:
            return self.title
        first_line = self.content.splitlines()[0] if self.content else ""
        return first_line[:40] + ("..." if len(first_line) > 40 else "")


class QAEntry(BaseEntry):
    question: str
    answer: str

    def display_name(self) -> str:
        return self.question


class ImageEntry(BaseEntry):
    filename: str
    size: int = Field(ge=0)
    content_type: Optional[str] = None
    preview: Optional[str] = None

    def display_name(self) -> str:
        return self.filename


ENTRY_MODELS: Dict[KnowledgeKind, Type[BaseEntry]] = {
    KnowledgeKind.DOCUMENT: DocumentEntry,
    KnowledgeKind.WEB_PAGE: WebPageEntry,
    KnowledgeKind.TEXT: TextEntry,
    KnowledgeKind.QA: QAEntry,
    KnowledgeKind.IMAGE: ImageEntry,
}
