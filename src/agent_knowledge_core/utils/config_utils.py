"""
配置管理工具函数
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, Field

ENV_PREFIX = "KNOWLEDGE_"
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent.parent / "config" / "config.yaml"


class KnowledgeSettings(BaseModel):
    """知识库跟踪配置"""
    progress_source: str = "simulated"
    tick_interval: float = Field(default=0.2, ge=0)
    min_step: int = Field(default=1, ge=1)
    max_step: int = Field(default=15, ge=1)
    failure_rate: float = Field(default=0.0, ge=0, le=1)

    autosave_debounce: float = Field(default=0.5, ge=0)
    persist_max_attempts: int = Field(default=2, ge=1)
    persist_retry_wait: float = Field(default=0.0, ge=0)
    retained_batches: int = Field(default=100, ge=0)

    max_document_size_mb: float = Field(default=10.0, gt=0)
    max_image_size_mb: float = Field(default=5.0, gt=0)
    supported_document_types: List[str] = Field(
        default_factory=lambda: [".csv", ".xlsx", ".pptx", ".pdf", ".txt", ".docx", ".md"]
    )
    supported_image_types: List[str] = Field(
        default_factory=lambda: [".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".webp"]
    )

    data_dir: str = "data"
    log_dir: str = "logs"


def read_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """读取主配置文件，文件不存在时返回空配置"""
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        logger.debug(f"配置文件不存在，使用默认配置: {path}")
        return {}
    with open(path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f)
    return config or {}


def _env_overrides() -> Dict[str, Any]:
    """读取 KNOWLEDGE_* 环境变量"""
    load_dotenv()
    overrides: Dict[str, Any] = {}
    for name, field in KnowledgeSettings.model_fields.items():
        raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if raw is None:
            continue
        if field.annotation == List[str]:
            overrides[name] = [part.strip() for part in raw.split(",") if part.strip()]
        else:
            overrides[name] = raw
    return overrides


def load_settings(config_path: Optional[Union[str, Path]] = None) -> KnowledgeSettings:
    """加载配置：YAML 的 knowledge 段，再由环境变量覆盖"""
    config = read_config(config_path).get("knowledge", {}) or {}
    config.update(_env_overrides())
    return KnowledgeSettings(**config)


def setup_logging(log_dir: Union[str, Path]) -> Path:
    """创建日志目录并添加按日期命名的日志文件"""
    log_path = Path(log_dir)
    log_path.mkdir(mode=0o777, parents=True, exist_ok=True)
    log_file = log_path / f"{datetime.now().strftime('%Y-%m-%d')}.log"
    logger.add(log_file, rotation="100 MB")
    return log_file
