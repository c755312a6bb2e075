"""
参考文献加载器 - 按格式读取一个或多个参考文献文件

格式按扩展名判断（.bib/.bibtex、.json、.yaml/.yml），
扩展名未知时根据内容判断。多个文件合并时同一 ID 以先加载的为准。
"""

import logging
import os
import re
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Union

from mdprep.files import MAX_BIBLIOGRAPHY_BYTES, FileUnavailableError, read_limited_text
from mdprep.citations.bibtex import parse_bibtex
from mdprep.citations.csl import parse_csl_json, parse_csl_yaml
from mdprep.citations.models import BibliographyRegistry

logger = logging.getLogger(__name__)


class BibliographyFormat(Enum):
    """参考文献文件格式"""
    BIBTEX = "bibtex"
    CSL_JSON = "csl-json"
    CSL_YAML = "csl-yaml"
    UNKNOWN = "unknown"


EXTENSION_FORMATS: dict[str, BibliographyFormat] = {
    ".bib": BibliographyFormat.BIBTEX,
    ".bibtex": BibliographyFormat.BIBTEX,
    ".json": BibliographyFormat.CSL_JSON,
    ".yaml": BibliographyFormat.CSL_YAML,
    ".yml": BibliographyFormat.CSL_YAML,
}

BIBTEX_SNIFF_PATTERN = re.compile(r'@\s*[A-Za-z]+\s*[{(]')
CSL_YAML_SNIFF_PATTERN = re.compile(r'^\s*-?\s*id\s*:', re.MULTILINE)


def detect_format(path: Union[str, Path]) -> BibliographyFormat:
    """根据扩展名判断格式（不区分大小写）"""
    return EXTENSION_FORMATS.get(Path(path).suffix.lower(), BibliographyFormat.UNKNOWN)


def sniff_format(content: str) -> BibliographyFormat:
    """根据内容判断格式"""
    stripped = content.lstrip()
    if stripped.startswith(("[", "{")) and '"id"' in content:
        return BibliographyFormat.CSL_JSON
    if BIBTEX_SNIFF_PATTERN.search(content):
        return BibliographyFormat.BIBTEX
    if CSL_YAML_SNIFF_PATTERN.search(content):
        return BibliographyFormat.CSL_YAML
    return BibliographyFormat.UNKNOWN


def resolve_bibliography_path(path: str, base_dir: Optional[str] = None) -> Path:
    """
    解析参考文献路径

    绝对路径以及 ./、../ 开头的路径原样使用，其他路径相对于 base_dir。
    """
    if os.path.isabs(path) or path.startswith(("./", "../")) or not base_dir:
        return Path(path)
    return Path(base_dir) / path


def parse_bibliography(content: str, fmt: BibliographyFormat) -> BibliographyRegistry:
    """按指定格式解析内容，UNKNOWN 时先根据内容判断"""
    if fmt == BibliographyFormat.UNKNOWN:
        fmt = sniff_format(content)

    if fmt == BibliographyFormat.BIBTEX:
        return parse_bibtex(content)
    if fmt == BibliographyFormat.CSL_JSON:
        return parse_csl_json(content)
    if fmt == BibliographyFormat.CSL_YAML:
        return parse_csl_yaml(content)
    return BibliographyRegistry()


def load_bibliography_file(path: Union[str, Path]) -> BibliographyRegistry:
    """
    加载单个参考文献文件（最大 10 MiB）

    文件不可用或格式无法识别时记录警告并返回空注册表。
    """
    try:
        content = read_limited_text(path, MAX_BIBLIOGRAPHY_BYTES)
    except FileUnavailableError as e:
        logger.warning(f"Skipping bibliography {e.path}: {e.reason}")
        return BibliographyRegistry()

    fmt = detect_format(path)
    if fmt == BibliographyFormat.UNKNOWN:
        fmt = sniff_format(content)
        if fmt == BibliographyFormat.UNKNOWN:
            logger.warning(f"Skipping bibliography {path}: unrecognized format")
            return BibliographyRegistry()

    registry = parse_bibliography(content, fmt)
    logger.debug(f"Loaded {len(registry)} entries from {path} ({fmt.value})")
    return registry


def load_bibliography(
    paths: Iterable[str],
    base_dir: Optional[str] = None,
) -> BibliographyRegistry:
    """
    加载并合并多个参考文献文件

    Args:
        paths: 文件路径列表
        base_dir: 相对路径的基准目录

    Returns:
        合并后的注册表，重复 ID 以先加载的文件为准
    """
    merged = BibliographyRegistry()
    for path in paths:
        resolved = resolve_bibliography_path(path, base_dir)
        file_registry = load_bibliography_file(resolved)
        skipped = len(file_registry) - merged.extend(file_registry)
        if skipped:
            logger.debug(f"{skipped} duplicate entries from {resolved} ignored")
    return merged
