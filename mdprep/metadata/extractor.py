"""
元数据提取器 - 识别并解析文档开头的元数据块

支持三种格式，按顺序尝试：
1. YAML front matter（以 --- 开头，以 --- 或 ... 结束）
2. Pandoc 标题块（最多三行 % 开头的行：title / author / date）
3. MultiMarkdown 元数据（开头连续的 "Key: Value" 行，空行结束）

没有识别到元数据不是错误：返回空列表和原样的文本。
"""

import logging
import re
from pathlib import Path
from typing import Iterator, Optional, Union

import yaml

from mdprep.files import MAX_METADATA_BYTES, FileUnavailableError, read_limited_text
from mdprep.metadata.models import MetadataList

logger = logging.getLogger(__name__)


# ============================================================
# 配置常量
# ============================================================

YAML_OPEN = "---"
YAML_CLOSE = ("---", "...")

PANDOC_KEYS = ("title", "author", "date")

# 以这些前缀开头的行不是 MMD 元数据
NON_METADATA_PREFIXES = (
    "#",        # 标题
    "<!--",     # HTML 注释
    "{:",       # Kramdown IAL/ALD 以及 {::...}
    "{{TOC",    # 目录标记
    "*[",       # 缩写定义
    "[>",       # 缩写定义
)

# 列表项：-、+、* 或 数字. / 数字) 后跟空白
LIST_ITEM_PATTERN = re.compile(r'^(?:[-+*]|\d+[.)])[ \t]')

# URL 协议
PROTOCOL_PATTERN = re.compile(r'[A-Za-z][A-Za-z0-9+.\-]*://|mailto:', re.IGNORECASE)

# Markdown 链接或图片
LINK_PATTERN = re.compile(r'!?\[[^\]]*\]\([^)]*\)')

YAML_SUFFIXES = (".yml", ".yaml")

# 别名可以让很小的 YAML 展开出指数级的条目
MAX_FLATTENED_ITEMS = 10_000
MAX_FLATTEN_DEPTH = 64


def _iter_lines(text: str) -> Iterator[tuple[int, str, int]]:
    """
    逐行遍历文本

    Yields:
        (行起始偏移, 去掉换行符的行内容, 下一行起始偏移)
    """
    pos = 0
    length = len(text)
    while pos < length:
        newline = text.find("\n", pos)
        if newline == -1:
            yield pos, text[pos:].rstrip("\r"), length
            return
        yield pos, text[pos:newline].rstrip("\r"), newline + 1
        pos = newline + 1


def _strip_quotes(value: str) -> str:
    """去掉一对匹配的外层引号"""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1].strip()
    return value


# ============================================================
# YAML
# ============================================================

class YamlExpansionError(Exception):
    """展开后的元数据超过 MAX_FLATTENED_ITEMS 或 MAX_FLATTEN_DEPTH"""


def _flatten_node(
    node: yaml.Node,
    prefix: str,
    items: MetadataList,
    active: frozenset = frozenset(),
) -> None:
    """
    把 YAML 节点展开成扁平的键值对

    嵌套映射使用点号连接的键（author.family）；
    纯标量序列用 ", " 连接；含有非标量的序列使用下标键（key.0, key.1）。
    引用自身的别名被跳过。

    Raises:
        YamlExpansionError: 条目数或嵌套深度超过上限
    """
    if len(items) >= MAX_FLATTENED_ITEMS:
        raise YamlExpansionError(f"more than {MAX_FLATTENED_ITEMS} items")

    if isinstance(node, yaml.ScalarNode):
        if prefix:
            items.append(prefix, node.value)
        return

    if id(node) in active:
        logger.debug(f"Skipping recursive alias at {prefix or '<root>'}")
        return
    if len(active) >= MAX_FLATTEN_DEPTH:
        raise YamlExpansionError(f"nested deeper than {MAX_FLATTEN_DEPTH} levels")
    active = active | {id(node)}

    if isinstance(node, yaml.SequenceNode):
        children = node.value
        if all(isinstance(child, yaml.ScalarNode) for child in children):
            if children and prefix:
                items.append(prefix, ", ".join(child.value for child in children))
            return
        for index, child in enumerate(children):
            key = f"{prefix}.{index}" if prefix else str(index)
            _flatten_node(child, key, items, active)
    elif isinstance(node, yaml.MappingNode):
        for key_node, value_node in node.value:
            if not isinstance(key_node, yaml.ScalarNode):
                continue
            key = f"{prefix}.{key_node.value}" if prefix else key_node.value
            _flatten_node(value_node, key, items, active)


def parse_yaml_lite(content: str) -> MetadataList:
    """
    逐行解析简单的 key: value

    在第一个冒号处切分，去掉首尾空白和一对匹配的引号，忽略空键。
    """
    items = MetadataList()
    for line in content.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip()
        if key:
            items.append(key, _strip_quotes(value.strip()))
    return items


def parse_yaml_content(content: str) -> MetadataList:
    """
    解析 YAML 内容（不含 --- 分隔行）

    根节点为映射时完整解析并展开；YAML 无效或根节点不是映射时
    回退到逐行解析。
    """
    try:
        root = yaml.compose(content)
    except (yaml.YAMLError, RecursionError) as e:
        logger.debug(f"YAML parse failed, using line parser: {e}")
        return parse_yaml_lite(content)

    if not isinstance(root, yaml.MappingNode):
        return parse_yaml_lite(content)

    items = MetadataList()
    try:
        _flatten_node(root, "", items)
    except YamlExpansionError as e:
        logger.warning(f"YAML metadata too large to expand ({e}), using line parser")
        return parse_yaml_lite(content)
    return items


def find_yaml_block(text: str) -> Optional[tuple[str, int]]:
    """
    定位 YAML front matter

    Returns:
        (分隔行之间的内容, 消耗的字符数)；没有闭合分隔行时返回 None
    """
    lines = _iter_lines(text)
    first = next(lines, None)
    if first is None or first[1].rstrip() != YAML_OPEN:
        return None

    body_start = first[2]
    for line_start, line, next_start in lines:
        if line.strip() in YAML_CLOSE:
            return text[body_start:line_start], next_start
    return None


def _parse_yaml_block(text: str) -> tuple[MetadataList, int]:
    block = find_yaml_block(text)
    if block is None:
        return MetadataList(), 0
    content, consumed = block
    return parse_yaml_content(content), consumed


# ============================================================
# Pandoc
# ============================================================

def _parse_pandoc_block(text: str) -> tuple[MetadataList, int]:
    """前三行 % 开头的行依次对应 title、author、date；空值不记录但占位"""
    items = MetadataList()
    consumed = 0
    index = 0

    for _, line, next_start in _iter_lines(text):
        if index >= len(PANDOC_KEYS):
            break
        trimmed = line.strip()
        if not trimmed.startswith("%"):
            break
        value = trimmed[1:].strip()
        if value:
            items.append(PANDOC_KEYS[index], value)
        index += 1
        consumed = next_start

    return items, consumed


# ============================================================
# MultiMarkdown
# ============================================================

def _parse_mmd_line(line: str, first: bool) -> Optional[tuple[str, str]]:
    """
    解析一行 MMD 元数据

    Args:
        line: 行内容
        first: 是否还没有接受任何元数据

    Returns:
        (key, value)，不是元数据行时返回 None
    """
    trimmed = line.strip()
    if trimmed.startswith(NON_METADATA_PREFIXES):
        return None
    if LIST_ITEM_PATTERN.match(trimmed):
        return None

    colon = line.find(":")
    if colon == -1:
        return None

    key_part = line[:colon]
    if "<" in key_part or PROTOCOL_PATTERN.search(line[:colon + 3]):
        return None

    if line[colon + 1:colon + 2] not in (" ", "\t"):
        return None

    key = key_part.strip()
    value = line[colon + 1:].strip()
    if not key or not value:
        return None

    # 还没有元数据时，值里的 URL 或链接说明这是正文
    if first and (PROTOCOL_PATTERN.search(value) or LINK_PATTERN.search(value)):
        return None

    return key, value


def _parse_mmd_block(text: str) -> tuple[MetadataList, int]:
    items = MetadataList()

    for line_start, line, next_start in _iter_lines(text):
        if not line.strip():
            if items:
                return items, next_start
            continue

        parsed = _parse_mmd_line(line, first=not items)
        if parsed is None:
            if items:
                return items, line_start
            return MetadataList(), 0

        items.append(*parsed)

    return items, len(text)


# ============================================================
# 公共接口
# ============================================================

def extract_metadata(text: str) -> tuple[MetadataList, str]:
    """
    从文档开头提取元数据

    Args:
        text: 文档全文

    Returns:
        (元数据列表, 剩余文本)；没有元数据时剩余文本与输入完全相同
    """
    if not text:
        return MetadataList(), text

    if text.startswith(YAML_OPEN):
        items, consumed = _parse_yaml_block(text)
    elif text.startswith("%"):
        items, consumed = _parse_pandoc_block(text)
    else:
        items, consumed = _parse_mmd_block(text)

    if not items:
        return MetadataList(), text
    return items, text[consumed:]


def load_metadata_file(path: Union[str, Path]) -> MetadataList:
    """
    从文件加载元数据（最大 1 MiB）

    自动识别 YAML / Pandoc / MMD；.yml/.yaml 文件不以 --- 开头时
    整个文件按 YAML 解析。文件不可用时记录警告并返回空列表。
    """
    try:
        content = read_limited_text(path, MAX_METADATA_BYTES)
    except FileUnavailableError as e:
        logger.warning(f"Skipping metadata file {e.path}: {e.reason}")
        return MetadataList()

    if content.startswith(YAML_OPEN):
        block = find_yaml_block(content)
        if block is not None:
            return parse_yaml_content(block[0])
        # 没有闭合分隔行，其余部分都是 YAML
        _, _, rest = content.partition("\n")
        return parse_yaml_content(rest)

    if Path(path).suffix.lower() in YAML_SUFFIXES:
        return parse_yaml_content(content)

    items, _ = extract_metadata(content)
    return items


# ============================================================
# 命令行 KEY=VALUE
# ============================================================

def _starts_new_pair(arg: str, pos: int) -> bool:
    """pos 处（逗号之后）是否是新的 KEY= 开头"""
    while pos < len(arg) and arg[pos].isspace():
        pos += 1
    if pos >= len(arg) or not (arg[pos].isalnum() or arg[pos] == "_"):
        return False
    equals = arg.find("=", pos)
    if equals == -1:
        return False
    comma = arg.find(",", pos)
    return comma == -1 or comma > equals


def _split_pair(pair: str) -> tuple[str, str]:
    key, _, raw = pair.partition("=")
    key = key.strip()
    if raw[:1] in ("'", '"'):
        quote = raw[0]
        close = raw.find(quote, 1)
        if close == -1:
            return key, raw[1:]
        return key, raw[1:close]
    return key, raw.strip()


def parse_command_metadata(arg: str) -> MetadataList:
    """
    解析命令行元数据参数

    格式为逗号分隔的 KEY=VALUE，值可以用单引号或双引号包裹。
    未加引号的值只有在逗号后面紧跟新的 KEY= 时才在逗号处结束，
    因此 "tags=a,b,title=X" 得到 tags="a,b" 和 title="X"。
    """
    items = MetadataList()
    pos = 0
    length = len(arg)

    while pos < length:
        while pos < length and arg[pos].isspace():
            pos += 1
        if pos >= length:
            break

        equals = arg.find("=", pos)
        if equals == -1:
            break

        value_start = equals + 1
        if arg[value_start:value_start + 1] in ("'", '"'):
            close = arg.find(arg[value_start], value_start + 1)
            pair_end = close + 1 if close != -1 else length
        else:
            pair_end = length
            comma = arg.find(",", value_start)
            while comma != -1:
                if _starts_new_pair(arg, comma + 1):
                    pair_end = comma
                    break
                comma = arg.find(",", comma + 1)

        key, value = _split_pair(arg[pos:pair_end])
        if key:
            items.append(key, value)

        while pair_end < length and arg[pair_end] in " \t":
            pair_end += 1
        if pair_end < length and arg[pair_end] == ",":
            pos = pair_end + 1
        else:
            break

    return items
