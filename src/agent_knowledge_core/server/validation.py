"""
提交校验 - 在创建任务之前同步拒绝不合法的条目
"""

from typing import Any, Iterable, List, Sequence, Set, Union

import pydantic
from loguru import logger

from ..errors import ValidationError
from ..models.entries import ENTRY_MODELS, BaseEntry, DocumentEntry, ImageEntry, WebPageEntry
from ..models.knowledge_item import KnowledgeItem, KnowledgeKind
from ..utils.config_utils import KnowledgeSettings
from ..utils.file_utils import detect_content_type, normalize_url, validate_file_size, validate_file_type

RawEntry = Union[BaseEntry, dict]


class SubmissionValidator:
    """按知识类型校验提交内容，任何一条不合法则整批拒绝"""

    def __init__(self, settings: KnowledgeSettings):
        self.settings = settings

    def validate(
        self,
        kind: KnowledgeKind,
        entries: Sequence[RawEntry],
        existing: Iterable[KnowledgeItem] = (),
    ) -> List[BaseEntry]:
        """
        校验并规范化提交条目

        Args:
            kind: 知识类型
            entries: 原始条目（字典或条目模型）
            existing: 当前已有的条目，用于链接去重

        Returns:
            规范化后的条目列表

        Raises:
            ValidationError: 任意条目不合法
        """
        if not entries:
            raise ValidationError("At least one entry is required", {"kind": kind.value})

        parsed = [self._parse(kind, entry, index) for index, entry in enumerate(entries)]

        if kind == KnowledgeKind.DOCUMENT:
            parsed = [
                self._check_file(entry, index, self.settings.supported_document_types,
                                 self.settings.max_document_size_mb)
                for index, entry in enumerate(parsed)
            ]
        elif kind == KnowledgeKind.IMAGE:
            parsed = [
                self._check_file(entry, index, self.settings.supported_image_types,
                                 self.settings.max_image_size_mb)
                for index, entry in enumerate(parsed)
            ]
        elif kind == KnowledgeKind.WEB_PAGE:
            parsed = self._check_urls(parsed, existing)
        elif kind == KnowledgeKind.TEXT:
            for index, entry in enumerate(parsed):
                if not entry.content:
                    raise ValidationError("Text content must not be empty", {"index": index})
        elif kind == KnowledgeKind.QA:
            for index, entry in enumerate(parsed):
                if not entry.question or not entry.answer:
                    raise ValidationError("Question and answer are both required", {"index": index})

        return parsed

    def _parse(self, kind: KnowledgeKind, entry: Any, index: int) -> BaseEntry:
        model = ENTRY_MODELS[kind]
        if isinstance(entry, BaseEntry):
            if not isinstance(entry, model):
                raise ValidationError(
                    f"Entry {index} is a {type(entry).__name__}, expected {model.__name__}",
                    {"index": index},
                )
            return entry
        try:
            return model.model_validate(entry)
        except pydantic.ValidationError as e:
            logger.warning(f"提交条目校验失败 ({kind.value} #{index}): {e}")
            raise ValidationError(f"Invalid {kind.value} entry {index}: {e}", {"index": index}) from e

    def _check_file(
        self,
        entry: Union[DocumentEntry, ImageEntry],
        index: int,
        supported_types: List[str],
        max_size_mb: float,
    ) -> Union[DocumentEntry, ImageEntry]:
        if not validate_file_type(entry.filename, supported_types):
            raise ValidationError(
                f"Unsupported file type: {entry.filename}",
                {"index": index, "supported_types": supported_types},
            )
        is_valid, error_msg = validate_file_size(entry.size, max_size_mb)
        if not is_valid:
            raise ValidationError(f"{entry.filename}: {error_msg}", {"index": index})
        if not entry.content_type:
            return entry.model_copy(update={"content_type": detect_content_type(entry.filename)})
        return entry

    def _check_urls(
        self,
        entries: List[WebPageEntry],
        existing: Iterable[KnowledgeItem],
    ) -> List[WebPageEntry]:
        known: Set[str] = {
            normalize_url(item.metadata.get("url", ""))
            for item in existing
            if item.kind == KnowledgeKind.WEB_PAGE
        }
        known.discard(None)
        checked = []
        for index, entry in enumerate(entries):
            url = normalize_url(entry.url)
            if url is None:
                raise ValidationError(f"Invalid web page URL: {entry.url}", {"index": index})
            if url in known:
                raise ValidationError(f"Web page already added: {url}", {"index": index, "url": url})
            known.add(url)
            checked.append(entry.model_copy(update={"url": url}))
        return checked
