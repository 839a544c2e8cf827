"""
文件与链接处理工具函数
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit


CONTENT_TYPE_MAP = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
    ".webp": "image/webp",
}


def file_suffix(filename: str) -> str:
    return Path(filename).suffix.lower()


def validate_file_type(filename: str, supported_types: List[str]) -> bool:
    """验证文件类型是否受支持"""
    if not filename:
        return False
    return file_suffix(filename) in supported_types


def validate_file_size(size: int, max_size_mb: float) -> Tuple[bool, str]:
    """验证文件大小"""
    if size <= 0:
        return False, "Empty file provided"
    if size > max_size_mb * 1024 * 1024:
        return False, f"File exceeds {max_size_mb} MB limit"
    return True, ""


def detect_content_type(filename: str) -> str:
    """根据文件扩展名检测MIME类型"""
    return CONTENT_TYPE_MAP.get(file_suffix(filename), "application/octet-stream")


def is_image(filename: str, content_type: Optional[str] = None) -> bool:
    content_type = content_type or detect_content_type(filename)
    return content_type.startswith("image/")


def normalize_url(url: str) -> Optional[str]:
    """
    规范化网页链接：协议和主机小写，去掉末尾斜杠和片段

    Returns:
        规范化后的链接，非 http/https 链接返回 None
    """
    parts = urlsplit(url.strip())
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        return None
    netloc = parts.netloc.lower()
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), netloc, path, parts.query, ""))


def get_supported_file_types(document_types: List[str], image_types: List[str]) -> Dict[str, List[str]]:
    """获取支持的文件类型"""
    return {
        "document_types": list(document_types),
        "image_types": list(image_types),
        "all_supported": list(document_types) + list(image_types),
    }
