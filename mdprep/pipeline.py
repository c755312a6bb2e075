"""
转换流水线 - 元数据、变量替换、引用与 Markdown 渲染的组合

处理顺序：
1. 提取文档元数据（MultiMarkdown / Kramdown / unified 模式）
2. 合并元数据：配置文件 < 文档 < 命令行
3. 用合并后的元数据覆盖选项
4. 替换 [%key] 变量
5. 识别引用并加载参考文献
6. 用 markdown-it-py 渲染 HTML
7. 渲染引用，生成并插入参考文献
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from markdown_it import MarkdownIt
from markdown_it.rules_block import StateBlock, html_block

from mdprep.config import Options, ProcessingMode, apply_metadata_to_options
from mdprep.metadata import MetadataList, extract_metadata, merge_metadata, replace_variables
from mdprep.citations import (
    CitationRegistry,
    generate_bibliography,
    insert_bibliography,
    load_bibliography,
    parse_citations,
    render_citations,
)
from mdprep.citations.parser import PLACEHOLDER_PREFIX

logger = logging.getLogger(__name__)

# html_block 规则原有的 alt 链
HTML_BLOCK_ALT = ["paragraph", "reference", "blockquote"]


@dataclass
class ConversionResult:
    """
    转换结果

    Attributes:
        html: 最终 HTML
        metadata: 合并后的元数据
        options: 应用元数据之后的选项
        citations: 引用注册表（未启用引用时为空）
    """
    html: str
    metadata: MetadataList = field(default_factory=MetadataList)
    options: Options = field(default_factory=Options)
    citations: CitationRegistry = field(default_factory=CitationRegistry)


def _html_block_except_citations(
    state: StateBlock, startLine: int, endLine: int, silent: bool
) -> bool:
    """
    html_block 规则，跳过以引用占位符开头的块

    这样的块由段落规则处理，占位符成为 html_inline。
    """
    pos = state.bMarks[startLine] + state.tShift[startLine]
    if state.src.startswith(PLACEHOLDER_PREFIX, pos):
        return False
    return html_block(state, startLine, endLine, silent)


def create_renderer(options: Options) -> MarkdownIt:
    """按选项创建 MarkdownIt 实例"""
    md = MarkdownIt(
        "commonmark",
        {
            # 引用占位符是 HTML 注释，必须原样通过
            "html": options.unsafe or options.citations_active,
            "breaks": options.hardbreaks,
        },
    )
    if options.enable_tables:
        md.enable("table")
    if options.mode == ProcessingMode.GFM:
        md.enable("strikethrough")
    if options.citations_active:
        md.block.ruler.at("html_block", _html_block_except_citations, {"alt": HTML_BLOCK_ALT})
    return md


def render_markdown(text: str, options: Optional[Options] = None) -> str:
    """把 Markdown 渲染为 HTML"""
    return create_renderer(options or Options()).render(text)


def convert(
    markdown: str,
    options: Optional[Options] = None,
    file_metadata: Optional[MetadataList] = None,
    cli_metadata: Optional[MetadataList] = None,
) -> ConversionResult:
    """
    把 Markdown 文档转换为 HTML

    Args:
        markdown: 文档全文
        options: 转换选项，默认 unified 模式
        file_metadata: 元数据文件中的元数据（优先级最低）
        cli_metadata: 命令行元数据（优先级最高）

    Returns:
        ConversionResult
    """
    options = options or Options()

    body = markdown
    document_metadata = MetadataList()
    if options.extracts_metadata:
        document_metadata, body = extract_metadata(markdown)
        if document_metadata:
            logger.debug(f"Extracted {len(document_metadata)} metadata items")

    metadata = merge_metadata(file_metadata, document_metadata, cli_metadata)
    options = apply_metadata_to_options(metadata, options)

    if options.enable_metadata_variables and metadata:
        body = replace_variables(body, metadata, options.enable_metadata_transforms)

    registry = CitationRegistry()
    if options.citations_active:
        body, registry = parse_citations(body, options.mode)
        if options.bibliography_files:
            registry.bibliography = load_bibliography(
                options.bibliography_files, options.base_directory
            )
        logger.debug(f"Found {len(registry)} citations")

    html = render_markdown(body, options)

    if options.citations_active:
        html = render_citations(
            html,
            registry,
            link_citations=options.link_citations,
            show_tooltips=options.show_tooltips,
        )
        block = generate_bibliography(
            registry,
            suppress=options.suppress_bibliography,
            nocite=options.nocite,
        )
        html = insert_bibliography(html, block)

    return ConversionResult(
        html=html,
        metadata=metadata,
        options=options,
        citations=registry,
    )
