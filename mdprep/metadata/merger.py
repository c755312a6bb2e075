"""
元数据合并 - 按优先级合并多个元数据来源

典型顺序：元数据文件 < 文档内元数据 < 命令行。
"""

from typing import Optional

from mdprep.metadata.models import MetadataItem, MetadataList


def merge_metadata(*sources: Optional[MetadataList]) -> MetadataList:
    """
    合并元数据列表，后面的来源优先

    对每个条目，先删除结果中所有键相同（不区分大小写）的条目，
    再把新条目追加到末尾。输入不会被修改。

    Args:
        *sources: 元数据列表，None 会被跳过

    Returns:
        新的元数据列表，不含大小写意义上重复的键
    """
    merged: list[MetadataItem] = []

    for source in sources:
        if source is None:
            continue
        for item in source:
            lowered = item.key.lower()
            merged = [existing for existing in merged if existing.key.lower() != lowered]
            merged.append(MetadataItem(item.key, item.value))

    return MetadataList(merged)
