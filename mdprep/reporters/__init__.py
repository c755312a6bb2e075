"""
Reporters Layer - 报告层

包含 Rich 终端报告器和 JSON 报告器，用于输出元数据和参考文献。
"""

from mdprep.reporters.base import Reporter
from mdprep.reporters.rich_reporter import RichReporter
from mdprep.reporters.json_reporter import JsonReporter

__all__ = [
    "Reporter",
    "RichReporter",
    "JsonReporter",
]
