"""
元数据变量替换 - 把正文中的 [%key] 替换为元数据值

启用转换时支持 [%key:transform1(opts):transform2] 语法。
查找 ] 时跟踪方括号深度，因此正则选项里可以出现 [ 和 ]。
"""

import logging
from typing import Optional

from mdprep.metadata.models import MetadataList
from mdprep.metadata.transforms import (
    TransformError,
    apply_transform_chain,
    parse_transform_chain,
)

logger = logging.getLogger(__name__)

TOKEN_OPEN = "[%"


def _find_token_end(text: str, start: int) -> int:
    """
    找到与 [% 匹配的 ]

    Args:
        text: 文本
        start: [% 之后的位置

    Returns:
        ] 的位置，找不到时返回 -1
    """
    depth = 1
    for pos in range(start, len(text)):
        ch = text[pos]
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return pos
    return -1


def _resolve(payload: str, metadata: MetadataList, transforms_enabled: bool) -> Optional[str]:
    """返回替换值，键不存在时返回 None"""
    if not transforms_enabled or ":" not in payload:
        return metadata.get(payload)

    try:
        key, chain = parse_transform_chain(payload)
    except TransformError as e:
        # 转换链无效时只取键本身的值
        logger.debug(f"Malformed transform chain in [%{payload}]: {e}")
        return metadata.get(payload.partition(":")[0])

    value = metadata.get(key)
    if value is None or not chain:
        return value
    return apply_transform_chain(value, chain)


def replace_variables(
    text: str,
    metadata: MetadataList,
    transforms_enabled: bool = False,
) -> str:
    """
    替换文本中的元数据变量

    Args:
        text: 正文
        metadata: 合并后的元数据
        transforms_enabled: 是否解析转换链

    Returns:
        替换后的文本；找不到值的变量原样保留，
        没有闭合 ] 的 [% 及其后的内容原样复制
    """
    if not text or not metadata:
        return text

    parts: list[str] = []
    last = 0
    pos = text.find(TOKEN_OPEN)

    while pos != -1:
        end = _find_token_end(text, pos + len(TOKEN_OPEN))
        if end == -1:
            break

        parts.append(text[last:pos])
        payload = text[pos + len(TOKEN_OPEN):end]
        value = _resolve(payload, metadata, transforms_enabled)
        if value is None:
            parts.append(text[pos:end + 1])
        else:
            parts.append(value)

        last = end + 1
        pos = text.find(TOKEN_OPEN, last)

    parts.append(text[last:])
    return "".join(parts)
