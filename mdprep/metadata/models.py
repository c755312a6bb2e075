"""
元数据模型 - MetadataItem 与有序的 MetadataList

键查找不区分大小写，并且忽略键内部的空白：
"HTML Header Level" 与 "htmlheaderlevel" 视为同一个键。
"""

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional


@dataclass
class MetadataItem:
    """
    单条元数据

    Attributes:
        key: 键（保留原始大小写）
        value: 值
    """
    key: str
    value: str


def normalize_key(key: str) -> str:
    """去掉所有空白并转为小写"""
    return "".join(key.split()).lower()


# 生成 front matter 时需要加引号的字符
_QUOTE_TRIGGERS = (":", "\n", '"', "\\")


@dataclass
class MetadataList:
    """
    有序元数据列表

    允许重复的键；按文档顺序保存，查找时后加入的条目优先。

    Attributes:
        items: 元数据条目
    """
    items: list[MetadataItem] = field(default_factory=list)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]]) -> "MetadataList":
        """从 (key, value) 序列构建"""
        return cls([MetadataItem(key, value) for key, value in pairs])

    def append(self, key: str, value: str) -> None:
        self.items.append(MetadataItem(key, value))

    def extend(self, items: Iterable[MetadataItem]) -> None:
        for item in items:
            self.items.append(MetadataItem(item.key, item.value))

    def __iter__(self) -> Iterator[MetadataItem]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)

    def keys(self) -> list[str]:
        return [item.key for item in self.items]

    def get(self, key: str) -> Optional[str]:
        """
        查找键对应的值

        先按不区分大小写精确匹配，再按去空白后的规范化键匹配。
        多个条目匹配时返回最后加入的那一条。

        Args:
            key: 要查找的键

        Returns:
            值，找不到时返回 None
        """
        if not key:
            return None

        lowered = key.lower()
        for item in reversed(self.items):
            if item.key and item.key.lower() == lowered:
                return item.value

        normalized = normalize_key(key)
        if not normalized:
            return None
        for item in reversed(self.items):
            if item.key and normalize_key(item.key) == normalized:
                return item.value

        return None

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def copy(self) -> "MetadataList":
        return MetadataList([MetadataItem(item.key, item.value) for item in self.items])

    def to_dict(self) -> dict[str, str]:
        """转为字典，重复的键以后出现的为准"""
        result: dict[str, str] = {}
        for item in self.items:
            result[item.key] = item.value
        return result

    def to_front_matter(self) -> str:
        """
        重新生成 YAML front matter 块

        值中含有冒号、换行、双引号或反斜杠时加双引号并转义。
        """
        lines = ["---"]
        for item in self.items:
            value = item.value
            if any(ch in value for ch in _QUOTE_TRIGGERS):
                escaped = (
                    value.replace("\\", "\\\\")
                    .replace('"', '\\"')
                    .replace("\n", "\\n")
                )
                value = f'"{escaped}"'
            lines.append(f"{item.key}: {value}")
        lines.append("---")
        return "\n".join(lines) + "\n"
