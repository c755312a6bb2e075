"""
BibTeX 解析器

解析 @type{key, field = {value}, field = "value", field = value} 条目，
把常用字段映射到 CSL 字段。@comment、@string、@preamble 会被跳过；
括号不平衡的条目被丢弃，从下一个 @ 继续解析。
"""

import logging
import re

from mdprep.citations.models import BibliographyEntry, BibliographyRegistry

logger = logging.getLogger(__name__)


class BibTeXSyntaxError(Exception):
    """BibTeX 条目括号或引号不匹配"""


# ============================================================
# 配置常量
# ============================================================

# 条目开头：@type{ 或 @type(
ENTRY_START_PATTERN = re.compile(r'@\s*([A-Za-z]+)\s*([{(])')

# 字段名：name =
FIELD_NAME_PATTERN = re.compile(r'[\s,]*([A-Za-z][\w\-:.]*)\s*=\s*')

# 不加引号的值：数字或宏名
BARE_VALUE_PATTERN = re.compile(r'[^,#{}"\s]+')

YEAR_PATTERN = re.compile(r'\d{4}')

SKIPPED_TYPES = frozenset({"comment", "string", "preamble"})

# BibTeX 类型 -> CSL 类型
TYPE_MAP: dict[str, str] = {
    "article": "article-journal",
    "book": "book",
    "inbook": "chapter",
    "incollection": "chapter",
    "inproceedings": "paper-conference",
    "conference": "paper-conference",
    "phdthesis": "thesis",
    "mastersthesis": "thesis",
    "techreport": "report",
}

DEFAULT_TYPE = "article"

# BibTeX 字段 -> BibliographyEntry 属性
FIELD_MAP: dict[str, str] = {
    "title": "title",
    "author": "author",
    "year": "year",
    "journal": "container_title",
    "journaltitle": "container_title",
    "publisher": "publisher",
    "volume": "volume",
    "pages": "page",
}

# 主字段缺失时使用的备用字段
FALLBACK_FIELDS: dict[str, tuple[str, ...]] = {
    "container_title": ("booktitle",),
    "publisher": ("institution", "school", "organization"),
}


def _find_closing(text: str, open_pos: int) -> int:
    """
    找到与 text[open_pos] 处 { 或 ( 对应的结束位置

    Raises:
        BibTeXSyntaxError: 到文本末尾仍未闭合
    """
    opener = text[open_pos]
    depth = 0
    for pos in range(open_pos, len(text)):
        ch = text[pos]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if opener == "{" and depth == 0:
                return pos
            if depth < 0:
                break
        elif ch == ")" and opener == "(" and depth == 0:
            return pos
    raise BibTeXSyntaxError(f"unbalanced braces starting at offset {open_pos}")


def _clean_value(value: str) -> str:
    """去掉花括号并合并空白"""
    return " ".join(value.replace("{", "").replace("}", "").split())


def _skip_spaces(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def _read_quoted(text: str, pos: int) -> int:
    """返回与 text[pos] 处双引号配对的结束引号位置"""
    depth = 0
    end = pos + 1
    while end < len(text):
        ch = text[end]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        elif ch == '"' and depth == 0 and text[end - 1] != "\\":
            return end
        end += 1
    raise BibTeXSyntaxError("unterminated quoted value")


def _read_value(text: str, pos: int) -> tuple[str, int]:
    """
    读取字段值，支持用 # 连接的多个部分

    Returns:
        (清理后的值, 值之后的位置)
    """
    parts: list[str] = []

    while True:
        pos = _skip_spaces(text, pos)
        if pos >= len(text):
            break

        ch = text[pos]
        if ch == "{":
            end = _find_closing(text, pos)
            parts.append(text[pos + 1:end])
            pos = end + 1
        elif ch == '"':
            end = _read_quoted(text, pos)
            parts.append(text[pos + 1:end])
            pos = end + 1
        else:
            match = BARE_VALUE_PATTERN.match(text, pos)
            if not match:
                break
            parts.append(match.group(0))
            pos = match.end()

        pos = _skip_spaces(text, pos)
        if pos < len(text) and text[pos] == "#":
            pos += 1
            continue
        break

    return _clean_value("".join(parts)), pos


def parse_fields(text: str) -> list[tuple[str, str]]:
    """解析条目键之后的字段列表，字段名转为小写"""
    fields: list[tuple[str, str]] = []
    pos = 0

    while pos < len(text):
        match = FIELD_NAME_PATTERN.match(text, pos)
        if not match:
            break
        name = match.group(1).lower()
        value, pos = _read_value(text, match.end())
        fields.append((name, value))

    return fields


def _build_entry(entry_type: str, body: str) -> BibliographyEntry | None:
    key, _, fields_text = body.partition(",")
    key = key.strip()
    if not key:
        return None

    entry = BibliographyEntry(id=key, type=TYPE_MAP.get(entry_type, DEFAULT_TYPE))
    values: dict[str, str] = {}
    for name, value in parse_fields(fields_text):
        if value:
            values.setdefault(name, value)

    for name, attr in FIELD_MAP.items():
        if name in values and getattr(entry, attr) is None:
            setattr(entry, attr, values[name])

    for attr, names in FALLBACK_FIELDS.items():
        if getattr(entry, attr) is None:
            for name in names:
                if name in values:
                    setattr(entry, attr, values[name])
                    break

    if entry.year is None and "date" in values:
        match = YEAR_PATTERN.search(values["date"])
        if match:
            entry.year = match.group(0)

    return entry


def parse_bibtex(content: str) -> BibliographyRegistry:
    """
    解析 BibTeX 内容

    Args:
        content: .bib 文件内容

    Returns:
        参考文献注册表；同一文件内重复的 ID 只保留第一个
    """
    registry = BibliographyRegistry()
    pos = 0

    while True:
        match = ENTRY_START_PATTERN.search(content, pos)
        if not match:
            break

        entry_type = match.group(1).lower()
        open_pos = match.end() - 1

        try:
            close_pos = _find_closing(content, open_pos)
            if entry_type in SKIPPED_TYPES:
                pos = close_pos + 1
                continue
            entry = _build_entry(entry_type, content[open_pos + 1:close_pos])
        except BibTeXSyntaxError as e:
            logger.debug(f"Dropping @{entry_type} entry: {e}")
            pos = match.end()
            continue

        pos = close_pos + 1
        if entry is None:
            continue
        if not registry.add(entry):
            logger.debug(f"Duplicate BibTeX id {entry.id!r} ignored")

    return registry
