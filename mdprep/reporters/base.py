"""
报告器基类 - 定义报告器接口
"""

from typing import Protocol

from mdprep.citations.models import BibliographyRegistry
from mdprep.metadata.models import MetadataList


class Reporter(Protocol):
    """报告器协议"""

    def report_metadata(self, metadata: MetadataList, source: str) -> None:
        """输出合并后的元数据"""
        ...

    def report_bibliography(self, registry: BibliographyRegistry, sources: list[str]) -> None:
        """输出参考文献条目"""
        ...
