"""
引用渲染器 - 在 HTML 中解析引用占位符并插入参考文献

渲染后的 HTML 中每个 <!--CITE:KEY--> 都会被替换为引用标记：
有对应参考文献条目时显示作者和年份，否则显示引用键本身。
落入代码块而被转义的占位符恢复为引用的原始文本。
"""

import logging
import re
from html import unescape
from typing import Callable, Optional, Union

from markdown_it.common.utils import escapeHtml

from mdprep.citations.models import BibliographyEntry, Citation, CitationRegistry
from mdprep.citations.parser import PLACEHOLDER_PREFIX, PLACEHOLDER_SUFFIX

logger = logging.getLogger(__name__)

# ============================================================
# 配置常量
# ============================================================

PLACEHOLDER_PATTERN = re.compile(
    re.escape(PLACEHOLDER_PREFIX) + r'(.*?)' + re.escape(PLACEHOLDER_SUFFIX),
    re.DOTALL,
)

# HTML 转义后的占位符，同一方括号内的多个引用以 "; " 连接
ESCAPED_PLACEHOLDER = r'&lt;!--CITE:(.*?)--&gt;'
ESCAPED_GROUP_PATTERN = re.compile(
    ESCAPED_PLACEHOLDER + r'(?:; ' + ESCAPED_PLACEHOLDER + r')*'
)
ESCAPED_KEY_PATTERN = re.compile(ESCAPED_PLACEHOLDER)

# 两种形式按文档顺序一次扫描，最后一个分组是未转义占位符的键
ANY_PLACEHOLDER_PATTERN = re.compile(
    r'(?P<escaped>' + ESCAPED_GROUP_PATTERN.pattern + r')|' + PLACEHOLDER_PATTERN.pattern,
    re.DOTALL,
)

REFERENCES_MARKER = "<!-- REFERENCES -->"
BACKMATTER_MARKER = "{backmatter}"
BACKMATTER_PARAGRAPH = "<p>{backmatter}</p>"

REFS_DIV_PATTERN = re.compile(r'<div\s+id=["\']refs["\'][^>]*>', re.IGNORECASE)
DIV_TAG_PATTERN = re.compile(r'<(/?)div\b[^>]*>', re.IGNORECASE)

BIBLIOGRAPHY_OPEN = '<div id="refs" class="references csl-bib-body">\n'
BIBLIOGRAPHY_CLOSE = "</div>\n"


# ============================================================
# 引用显示文本
# ============================================================

def _extras(citation: Optional[Citation]) -> str:
    """定位和后缀，如 ", p. 33" 或 ", p. 33 and passim" """
    if citation is None:
        return ""
    text = ""
    if citation.locator:
        text += f", {citation.locator}"
    if citation.suffix:
        text += f" {citation.suffix}" if text else f", {citation.suffix}"
    return text


def _prefixed(citation: Optional[Citation], text: str) -> str:
    if citation is not None and citation.prefix:
        return f"{citation.prefix} {text}"
    return text


def citation_text(
    key: str,
    citation: Optional[Citation],
    entry: Optional[BibliographyEntry],
) -> str:
    """
    生成引用的显示文本（未转义）

    - 作者在正文中 (@key)：AUTHOR (YEAR)
    - 不显示作者 ([-@key])：(YEAR)
    - 默认 ([@key])：(AUTHOR YEAR)

    缺少的字段逐级退化，最终退化为引用键。
    """
    in_text = citation is not None and citation.author_in_text
    suppressed = citation is not None and citation.author_suppressed
    extras = _extras(citation)

    if entry is None:
        if in_text:
            return f"{key} ({extras[2:]})" if extras else key
        return f"({_prefixed(citation, key)}{extras})"

    author, year = entry.author, entry.year

    if in_text:
        head = _prefixed(citation, author or key)
        if year:
            return f"{head} ({year}{extras})"
        return f"{head} ({extras[2:]})" if extras else head

    if suppressed:
        core = year or key
    elif author and year:
        core = f"{author} {year}"
    else:
        core = author or year or key
    return f"({_prefixed(citation, core)}{extras})"


def _citation_markup(
    key: str,
    citation: Optional[Citation],
    entry: Optional[BibliographyEntry],
    link_citations: bool,
    show_tooltips: bool,
) -> str:
    text = escapeHtml(citation_text(key, citation, entry))
    attrs = f'class="citation" data-cites="{escapeHtml(key)}"'
    if show_tooltips and entry is not None:
        attrs += f' title="{escapeHtml(format_reference_text(entry))}"'

    if link_citations and entry is not None:
        return f'<a href="#ref-{escapeHtml(key)}" {attrs}>{text}</a>'
    return f"<span {attrs}>{text}</span>"


class _CitationQueue:
    """按文档顺序把占位符对应到引用；同一个键出现多次时依次取用"""

    def __init__(self, registry: CitationRegistry):
        self.registry = registry
        self.pending: dict[str, list[Citation]] = {}
        for citation in registry:
            self.pending.setdefault(citation.key, []).append(citation)

    def next(self, key: str) -> Optional[Citation]:
        queue = self.pending.get(key)
        if queue:
            return queue.pop(0)
        return self.registry.find(key)


def render_citations(
    html: str,
    registry: Optional[CitationRegistry],
    link_citations: bool = False,
    show_tooltips: bool = False,
) -> str:
    """
    替换 HTML 中的引用占位符

    Args:
        html: 渲染后的 HTML
        registry: 引用注册表（bibliography 可以为 None）
        link_citations: 有参考文献条目时输出 <a href="#ref-KEY">
        show_tooltips: 输出 title 提示

    Returns:
        不再含有占位符的 HTML
    """
    if PLACEHOLDER_PREFIX not in html and "&lt;!--CITE:" not in html:
        return html

    registry = registry if registry is not None else CitationRegistry()
    bibliography = registry.bibliography
    queue = _CitationQueue(registry)

    def lookup(key: str) -> Optional[BibliographyEntry]:
        if bibliography is None:
            return None
        return bibliography.find(key)

    def replace_placeholder(match: re.Match) -> str:
        if match.group("escaped"):
            return restore_escaped(match)
        key = match.group(match.re.groups)
        citation = queue.next(key)
        if citation is None:
            logger.debug(f"Citation placeholder for unknown key {key!r}")
        entry = lookup(key)
        if entry is None:
            logger.debug(f"No bibliography entry for {key!r}")
        return _citation_markup(key, citation, entry, link_citations, show_tooltips)

    def restore_escaped(match: re.Match) -> str:
        keys = [unescape(key) for key in ESCAPED_KEY_PATTERN.findall(match.group(0))]
        citations = [queue.next(key) for key in keys]
        raw = next((c.raw for c in citations if c is not None and c.raw), "")
        if not raw:
            raw = "; ".join(f"@{key}" for key in keys)
        return escapeHtml(raw)

    return ANY_PLACEHOLDER_PATTERN.sub(replace_placeholder, html)


# ============================================================
# 参考文献条目
# ============================================================

def _format_fields(entry: BibliographyEntry, emphasize: Callable[[str], str],
                   escape: Callable[[str], str]) -> str:
    """依次追加存在的字段，分隔符取决于前面是否已有内容"""
    out = ""

    if entry.author:
        out += escape(entry.author)
    if entry.year:
        out += (" " if out else "") + escape(entry.year)
    if entry.title:
        out += (". " if out else "") + emphasize(escape(entry.title))
    if entry.container_title:
        out += (". " if out else "") + emphasize(escape(entry.container_title))
    if entry.volume:
        out += (" " if out else "") + escape(entry.volume)
    if entry.page:
        out += (": " if out else "") + escape(entry.page)
    if entry.publisher:
        out += (". " if out else "") + escape(entry.publisher)

    return out


def format_reference_text(entry: BibliographyEntry) -> str:
    """条目的纯文本形式，用于 title 提示"""
    return _format_fields(entry, emphasize=lambda s: s, escape=lambda s: s) or entry.id


def format_bibliography_entry(entry: BibliographyEntry) -> str:
    """
    格式化一个参考文献条目为 HTML

    Returns:
        <div id="ref-ID" class="csl-entry">...</div>
    """
    body = _format_fields(entry, emphasize=lambda s: f"<em>{s}</em>", escape=escapeHtml)
    return f'<div id="ref-{escapeHtml(entry.id)}" class="csl-entry">{body}</div>\n'


def _nocite_keys(nocite: Union[str, list[str], None]) -> list[str]:
    if not nocite:
        return []
    if isinstance(nocite, str):
        parts = nocite.replace(";", ",").split(",")
    else:
        parts = nocite
    keys = []
    for part in parts:
        key = part.strip().lstrip("@")
        if key and key not in keys:
            keys.append(key)
    return keys


def generate_bibliography(
    registry: Optional[CitationRegistry],
    suppress: bool = False,
    nocite: Union[str, list[str], None] = None,
) -> Optional[str]:
    """
    生成参考文献块

    只包含被引用过的条目（去重，按引用顺序），以及 nocite 指定的条目，
    nocite 为 "*" 时包含全部已加载条目。

    Args:
        registry: 引用注册表
        suppress: 不输出参考文献
        nocite: 额外列出的键（逗号分隔字符串或列表）

    Returns:
        参考文献 HTML；被抑制或没有条目时返回 None
    """
    if suppress or registry is None or registry.bibliography is None:
        return None

    bibliography = registry.bibliography
    selected: dict[str, BibliographyEntry] = {}

    for key in registry.keys():
        entry = bibliography.find(key)
        if entry is not None:
            selected.setdefault(entry.id, entry)

    for key in _nocite_keys(nocite):
        if key == "*":
            for entry in bibliography:
                selected.setdefault(entry.id, entry)
            continue
        entry = bibliography.find(key)
        if entry is None:
            logger.debug(f"nocite key {key!r} not in bibliography")
            continue
        selected.setdefault(entry.id, entry)

    if not selected:
        return None

    entries = "".join(format_bibliography_entry(entry) for entry in selected.values())
    return BIBLIOGRAPHY_OPEN + entries + BIBLIOGRAPHY_CLOSE


# ============================================================
# 插入
# ============================================================

def _find_div_close(html: str, start: int) -> int:
    """从 start（开始标签之后）找到与之配对的 </div> 的位置，找不到返回 -1"""
    depth = 1
    for match in DIV_TAG_PATTERN.finditer(html, start):
        if match.group(1):
            depth -= 1
            if depth == 0:
                return match.start()
        else:
            depth += 1
    return -1


def insert_bibliography(html: str, block: Optional[str]) -> str:
    """
    把参考文献块插入 HTML

    优先级：<!-- REFERENCES --> 标记、{backmatter} 标记、
    已有 <div id="refs"> 的结束标签之前，否则追加到末尾。
    """
    if not block:
        return html

    if REFERENCES_MARKER in html:
        return html.replace(REFERENCES_MARKER, block, 1)

    if BACKMATTER_PARAGRAPH in html:
        return html.replace(BACKMATTER_PARAGRAPH, block, 1)
    if BACKMATTER_MARKER in html:
        return html.replace(BACKMATTER_MARKER, block, 1)

    match = REFS_DIV_PATTERN.search(html)
    if match:
        close = _find_div_close(html, match.end())
        if close != -1:
            return html[:close] + block + html[close:]

    if html and not html.endswith("\n"):
        html += "\n"
    return html + block
