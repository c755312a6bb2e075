"""
文件读取模块 - 带大小上限的文本文件读取

元数据文件和参考文献文件都是整体读入内存的，
超过上限、不存在或不可读的文件统一抛出 FileUnavailableError，
由调用方记录警告后跳过该来源。
"""

from pathlib import Path
from typing import Union

# ============================================================
# 配置常量
# ============================================================

# 参考文献文件上限 (10 MiB)
MAX_BIBLIOGRAPHY_BYTES = 10 * 1024 * 1024

# 元数据文件上限 (1 MiB)
MAX_METADATA_BYTES = 1024 * 1024


class FileUnavailableError(Exception):
    """文件缺失、不可读或超过大小上限"""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


def read_limited_text(path: Union[str, Path], max_bytes: int) -> str:
    """
    读取文本文件，超过 max_bytes 时拒绝读取

    先按 UTF-8 解码，失败时回退到 latin-1。

    Args:
        path: 文件路径
        max_bytes: 允许的最大字节数

    Returns:
        文件内容

    Raises:
        FileUnavailableError: 文件不存在、不可读或过大
    """
    file_path = Path(path)

    try:
        size = file_path.stat().st_size
    except OSError as e:
        raise FileUnavailableError(file_path, e.strerror or "cannot stat file") from e

    if not file_path.is_file():
        raise FileUnavailableError(file_path, "not a regular file")

    if size > max_bytes:
        raise FileUnavailableError(
            file_path, f"file is {size} bytes, limit is {max_bytes} bytes"
        )

    try:
        data = file_path.read_bytes()
    except OSError as e:
        raise FileUnavailableError(file_path, e.strerror or "cannot read file") from e

    # 文件可能在 stat 之后被改写
    if len(data) > max_bytes:
        raise FileUnavailableError(
            file_path, f"file is {len(data)} bytes, limit is {max_bytes} bytes"
        )

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")
