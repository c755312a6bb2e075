"""
JSON 报告器 - 输出 JSON 格式报告
"""

import json
import sys
from dataclasses import asdict
from typing import TextIO

from mdprep.citations.models import BibliographyRegistry
from mdprep.metadata.models import MetadataList


class JsonReporter:
    """JSON 报告器"""

    def __init__(self, output: TextIO | None = None):
        self.output = output or sys.stdout

    def report_metadata(self, metadata: MetadataList, source: str) -> None:
        """元数据按原顺序输出为 key/value 列表"""
        report_data = {
            "source": source,
            "metadata": [
                {"key": item.key, "value": item.value}
                for item in metadata
            ],
            "summary": {
                "total_items": len(metadata),
            },
        }
        self._write(report_data)

    def report_bibliography(self, registry: BibliographyRegistry, sources: list[str]) -> None:
        """参考文献条目，省略为空的字段"""
        report_data = {
            "sources": sources,
            "entries": [
                {name: value for name, value in asdict(entry).items() if value is not None}
                for entry in registry
            ],
            "summary": {
                "total_entries": len(registry),
            },
        }
        self._write(report_data)

    def _write(self, report_data: dict) -> None:
        json_str = json.dumps(report_data, indent=2, ensure_ascii=False)
        print(json_str, file=self.output)
