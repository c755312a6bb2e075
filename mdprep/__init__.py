"""
mdprep - Markdown 文档预处理引擎

提取并合并文档元数据，替换 [%key] 元数据变量，
识别学术引用并根据参考文献渲染为 HTML。
"""

__version__ = "0.1.0"

from mdprep.config import Options, ProcessingMode, options_for_mode, parse_mode
from mdprep.pipeline import ConversionResult, convert, render_markdown

__all__ = [
    "__version__",
    # config
    "Options",
    "ProcessingMode",
    "options_for_mode",
    "parse_mode",
    # pipeline
    "ConversionResult",
    "convert",
    "render_markdown",
]
