"""
引用解析器 - 识别正文中的三种引用语法并替换为占位符

按位置依次尝试：
1. mmark:         [@RFC2119]、[@!RFC1034]、[@-BCP14]（仅 unified 模式）
2. MultiMarkdown: [#key]、[p. 23][#key]
3. Pandoc:        @key、@key [p. 33]、[@key]、[-@key]、[see @a, p. 3; @b]（仅 unified 模式）

匹配到的引用被替换为 <!--CITE:KEY-->，在 HTML 渲染之后由渲染器解析。
代码块和行内代码中的内容不处理。
"""

import re
from typing import Optional

from mdprep.config import CITATION_MODES, ProcessingMode
from mdprep.citations.models import Citation, CitationRegistry, CitationSyntax

# ============================================================
# 配置常量
# ============================================================

PLACEHOLDER_PREFIX = "<!--CITE:"
PLACEHOLDER_SUFFIX = "-->"

# 引用键中允许的标点（字母数字和下划线之外）
KEY_PUNCTUATION = "_:.#$%&-+?<>~/"

# mmark 引用键前缀
MMARK_PREFIX_PATTERN = re.compile(r'(?:RFC|BCP|STD)\d|I-D\.|W3C\.')

# mmark 引用键字符
MMARK_KEY_PATTERN = re.compile(r'[A-Za-z0-9.#\-]+')

# mmark 修饰符：! 规范性、? 资料性、- 不显示作者
MMARK_MODIFIERS = "!?-"

# 看起来像定位信息的文本
LOCATOR_PATTERN = re.compile(r'p\.|pp\.|chap\.|chapter|sec\.|section')

# MultiMarkdown 引用前的定位：[p. 23][#key]
MMD_LOCATOR_PATTERN = re.compile(r'\[([^\[\]\n]+)\](?=\[#)')


def make_placeholder(key: str) -> str:
    """生成占位符"""
    return f"{PLACEHOLDER_PREFIX}{key}{PLACEHOLDER_SUFFIX}"


def _is_key_char(ch: str) -> bool:
    return ch.isalnum() or ch in KEY_PUNCTUATION


def read_citation_key(text: str, pos: int) -> Optional[tuple[str, int]]:
    """
    读取引用键

    普通键以字母、数字或下划线开头，内部可以有 KEY_PUNCTUATION 中的标点，
    末尾的标点不算在键内；{...} 包裹的键原样保留。

    Returns:
        (键, 结束位置)，不是合法键时返回 None
    """
    if pos >= len(text):
        return None

    if text[pos] == "{":
        close = text.find("}", pos + 1)
        if close == -1:
            return None
        key = text[pos + 1:close]
        if not key or not all(_is_key_char(ch) for ch in key):
            return None
        if PLACEHOLDER_SUFFIX in key:
            return None
        return key, close + 1

    if not (text[pos].isalnum() or text[pos] == "_"):
        return None

    end = pos
    while end < len(text) and _is_key_char(text[end]):
        end += 1

    # 占位符以 --> 结尾，键里不能出现
    cut = text.find(PLACEHOLDER_SUFFIX, pos, end)
    if cut != -1:
        end = cut

    while end > pos and not (text[end - 1].isalnum() or text[end - 1] == "_"):
        end -= 1

    if end == pos:
        return None
    return text[pos:end], end


def _classify_trailer(text: str) -> tuple[Optional[str], Optional[str]]:
    """逗号后的文本：像页码/章节的是 locator，其他是 suffix"""
    text = text.strip()
    if not text:
        return None, None
    if LOCATOR_PATTERN.search(text) or text[0].isdigit():
        return text, None
    return None, text


# ============================================================
# mmark
# ============================================================

def _parse_mmark(text: str, pos: int) -> Optional[tuple[list[Citation], int]]:
    """[@RFC1234] 以及分号分隔的多个键 [@RFC1034; @RFC1035]"""
    if not text.startswith("[@", pos):
        return None

    citations: list[Citation] = []
    cursor = pos + 2

    while True:
        suppressed = False
        if cursor < len(text) and text[cursor] in MMARK_MODIFIERS:
            suppressed = text[cursor] == "-"
            cursor += 1

        if not MMARK_PREFIX_PATTERN.match(text, cursor):
            return None
        match = MMARK_KEY_PATTERN.match(text, cursor)
        if not match:
            return None

        citations.append(Citation(
            key=match.group(0),
            syntax=CitationSyntax.MMARK,
            author_suppressed=suppressed,
            position=pos,
        ))
        cursor = match.end()

        while cursor < len(text) and text[cursor] in " \t":
            cursor += 1
        if cursor >= len(text):
            return None
        if text[cursor] == "]":
            return citations, cursor + 1
        if text[cursor] != ";":
            return None

        cursor += 1
        while cursor < len(text) and text[cursor] in " \t":
            cursor += 1
        if not text.startswith("@", cursor):
            return None
        cursor += 1


# ============================================================
# MultiMarkdown
# ============================================================

def _parse_mmd(text: str, pos: int) -> Optional[tuple[list[Citation], int]]:
    """[#key] 或 [locator][#key]"""
    locator = None
    key_pos = pos

    match = MMD_LOCATOR_PATTERN.match(text, pos)
    if match:
        locator = match.group(1).strip() or None
        key_pos = match.end()

    if not text.startswith("[#", key_pos):
        return None

    result = read_citation_key(text, key_pos + 2)
    if result is None:
        return None
    key, end = result
    if not text.startswith("]", end):
        return None

    citation = Citation(
        key=key,
        syntax=CitationSyntax.MMD,
        locator=locator,
        position=pos,
    )
    return [citation], end + 1


# ============================================================
# Pandoc
# ============================================================

def _find_at(item: str) -> int:
    """找到不紧跟在单词字符之后的 @，找不到返回 -1"""
    at = item.find("@")
    while at != -1:
        if at == 0 or not (item[at - 1].isalnum() or item[at - 1] == "_"):
            return at
        at = item.find("@", at + 1)
    return -1


def _parse_pandoc_item(item: str, pos: int) -> Optional[Citation]:
    """解析方括号内的一项：[prefix] [-]@key [, locator | suffix]"""
    at = _find_at(item)
    if at == -1:
        return None

    suppressed = at > 0 and item[at - 1] == "-" and (at == 1 or item[at - 2].isspace())
    prefix_end = at - 1 if suppressed else at
    prefix = item[:prefix_end].strip() or None

    result = read_citation_key(item, at + 1)
    if result is None:
        return None
    key, key_end = result

    locator = suffix = None
    rest = item[key_end:].strip()
    if rest.startswith(","):
        locator, suffix = _classify_trailer(rest[1:])
    elif rest:
        suffix = rest

    return Citation(
        key=key,
        syntax=CitationSyntax.PANDOC,
        prefix=prefix,
        locator=locator,
        suffix=suffix,
        author_suppressed=suppressed,
        position=pos,
    )


def _parse_pandoc_bracket(text: str, pos: int) -> Optional[tuple[list[Citation], int]]:
    """[@key]、[-@key]、[see @key, p. 33; @other]"""
    end = text.find("]", pos + 1)
    if end == -1:
        return None

    content = text[pos + 1:end]
    if "[" in content or "\n\n" in content or "@" not in content:
        return None

    # 链接 [text](url) 和引用式链接定义 [text]: url
    if text.startswith("(", end + 1) or text.startswith(":", end + 1):
        return None

    citations = []
    for item in content.split(";"):
        citation = _parse_pandoc_item(item, pos)
        if citation is None:
            return None
        citations.append(citation)

    return citations, end + 1


def _parse_pandoc_bare(text: str, pos: int) -> Optional[tuple[list[Citation], int]]:
    """@key，可选紧跟 [locator]"""
    if pos > 0:
        before = text[pos - 1]
        if before.isalnum() or before in "_[-@":
            return None

    result = read_citation_key(text, pos + 1)
    if result is None:
        return None
    key, end = result

    locator = None
    cursor = end
    while cursor < len(text) and text[cursor] in " \t":
        cursor += 1
    if text.startswith("[", cursor):
        close = text.find("]", cursor + 1)
        if close != -1:
            content = text[cursor + 1:close]
            is_citation = content.lstrip().startswith(("@", "-@", "#"))
            is_link = text.startswith("(", close + 1)
            if content.strip() and "[" not in content and "\n" not in content \
                    and not is_citation and not is_link:
                locator = content.strip()
                end = close + 1

    citation = Citation(
        key=key,
        syntax=CitationSyntax.PANDOC,
        locator=locator,
        author_in_text=True,
        position=pos,
    )
    return [citation], end


# ============================================================
# 扫描
# ============================================================

def _match_citation(
    text: str, pos: int, mode: ProcessingMode
) -> Optional[tuple[list[Citation], int]]:
    unified = mode == ProcessingMode.UNIFIED

    if text[pos] == "[":
        if unified:
            match = _parse_mmark(text, pos)
            if match:
                return match
        match = _parse_mmd(text, pos)
        if match:
            return match
        if unified:
            return _parse_pandoc_bracket(text, pos)
        return None

    if text[pos] == "@" and unified:
        return _parse_pandoc_bare(text, pos)
    return None


def _at_line_start(text: str, pos: int) -> bool:
    """pos 之前只有不超过三个空格"""
    line_start = text.rfind("\n", 0, pos) + 1
    indent = text[line_start:pos]
    return len(indent) <= 3 and indent.strip(" ") == ""


def _skip_code(text: str, pos: int) -> int:
    """
    pos 处是反引号时跳过代码

    三个及以上反引号开头的行是代码围栏，一直跳到闭合围栏所在行结束
    （没有闭合围栏时跳到文末）；一到两个反引号是行内代码，跳到相同长度的
    反引号串之后，找不到时只跳过这串反引号本身。
    """
    run_end = pos
    while run_end < len(text) and text[run_end] == "`":
        run_end += 1
    run = run_end - pos

    if run >= 3 and _at_line_start(text, pos):
        fence = re.compile(r'^ {0,3}`{%d,}[ \t]*$' % run, re.MULTILINE)
        line_end = text.find("\n", run_end)
        if line_end == -1:
            return len(text)
        match = fence.search(text, line_end + 1)
        if match is None:
            return len(text)
        return match.end()

    closing = re.compile(r'(?<!`)`{%d}(?!`)' % run)
    match = closing.search(text, run_end)
    if match is None:
        return run_end
    return match.end()


def parse_citations(
    text: str,
    mode: ProcessingMode = ProcessingMode.UNIFIED,
) -> tuple[str, CitationRegistry]:
    """
    识别引用并替换为占位符

    Args:
        text: Markdown 正文
        mode: 处理模式，只有 MultiMarkdown 和 unified 模式解析引用

    Returns:
        (带占位符的文本, 按文档顺序排列的引用注册表)；
        同一对方括号里的多个引用的占位符用 "; " 连接
    """
    registry = CitationRegistry()
    if mode not in CITATION_MODES or not text:
        return text, registry

    parts: list[str] = []
    copied = 0
    pos = 0
    length = len(text)

    while pos < length:
        ch = text[pos]

        if ch == "`":
            pos = _skip_code(text, pos)
            continue

        if ch not in "[@":
            pos += 1
            continue

        match = _match_citation(text, pos, mode)
        if match is None:
            pos += 1
            continue

        citations, end = match
        raw = text[pos:end]
        for citation in citations:
            citation.raw = raw
            registry.add(citation)

        parts.append(text[copied:pos])
        parts.append("; ".join(make_placeholder(citation.key) for citation in citations))
        copied = pos = end

    parts.append(text[copied:])
    return "".join(parts), registry
