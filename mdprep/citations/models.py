"""
引用数据模型

包含引用、引用注册表、参考文献条目和参考文献注册表。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, Optional


class CitationSyntax(Enum):
    """引用语法"""
    PANDOC = "pandoc"       # [@key] / @key
    MMD = "mmd"             # [#key]
    MMARK = "mmark"         # [@RFC1234]


@dataclass
class Citation:
    """
    正文中的一处引用

    Attributes:
        key: 引用键
        syntax: 引用语法
        prefix: 前缀（如 "see"）
        locator: 定位（如 "p. 33"）
        suffix: 后缀
        author_suppressed: 不显示作者（[-@key]）
        author_in_text: 作者出现在正文中（@key）
        position: 在原文中的偏移
        raw: 原文中匹配到的文本
    """
    key: str
    syntax: CitationSyntax
    prefix: Optional[str] = None
    locator: Optional[str] = None
    suffix: Optional[str] = None
    author_suppressed: bool = False
    author_in_text: bool = False
    position: int = 0
    raw: str = ""


@dataclass
class BibliographyEntry:
    """
    参考文献条目（CSL 字段的子集）

    Attributes:
        id: 条目 ID（引用键）
        type: CSL 类型（article-journal、book 等）
        title: 标题
        author: 作者
        year: 年份
        container_title: 期刊或文集名
        publisher: 出版者
        volume: 卷
        page: 页码
    """
    id: str
    type: Optional[str] = None
    title: Optional[str] = None
    author: Optional[str] = None
    year: Optional[str] = None
    container_title: Optional[str] = None
    publisher: Optional[str] = None
    volume: Optional[str] = None
    page: Optional[str] = None


@dataclass
class BibliographyRegistry:
    """
    参考文献注册表

    按加载顺序保存条目；同一个 ID 只保留第一次出现的条目。
    按 ID 查找区分大小写。
    """
    entries: list[BibliographyEntry] = field(default_factory=list)
    _index: dict[str, BibliographyEntry] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        initial, self.entries = self.entries, []
        for entry in initial:
            self.add(entry)

    def add(self, entry: BibliographyEntry) -> bool:
        """添加条目，ID 已存在时丢弃并返回 False"""
        if entry.id in self._index:
            return False
        self._index[entry.id] = entry
        self.entries.append(entry)
        return True

    def extend(self, entries: Iterable[BibliographyEntry]) -> int:
        """添加多个条目，返回实际加入的数量"""
        return sum(1 for entry in entries if self.add(entry))

    def find(self, entry_id: str) -> Optional[BibliographyEntry]:
        return self._index.get(entry_id)

    def __iter__(self) -> Iterator[BibliographyEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)


@dataclass
class CitationRegistry:
    """
    引用注册表

    按文档顺序保存引用；bibliography 只是引用，不归注册表所有。
    """
    citations: list[Citation] = field(default_factory=list)
    bibliography: Optional[BibliographyRegistry] = None

    def add(self, citation: Citation) -> None:
        self.citations.append(citation)

    def find(self, key: str) -> Optional[Citation]:
        """返回第一个使用该键的引用"""
        for citation in self.citations:
            if citation.key == key:
                return citation
        return None

    def keys(self) -> list[str]:
        """按首次出现顺序返回不重复的键"""
        seen: dict[str, None] = {}
        for citation in self.citations:
            seen.setdefault(citation.key, None)
        return list(seen)

    def __iter__(self) -> Iterator[Citation]:
        return iter(self.citations)

    def __len__(self) -> int:
        return len(self.citations)
