"""
Citation Layer - 引用层

负责引用识别、参考文献加载和引用渲染。
"""

from mdprep.citations.models import (
    BibliographyEntry,
    BibliographyRegistry,
    Citation,
    CitationRegistry,
    CitationSyntax,
)
from mdprep.citations.parser import make_placeholder, parse_citations
from mdprep.citations.bibtex import BibTeXSyntaxError, parse_bibtex
from mdprep.citations.csl import parse_csl_json, parse_csl_yaml
from mdprep.citations.loader import (
    BibliographyFormat,
    detect_format,
    load_bibliography,
    load_bibliography_file,
    resolve_bibliography_path,
)
from mdprep.citations.renderer import (
    format_bibliography_entry,
    generate_bibliography,
    insert_bibliography,
    render_citations,
)

__all__ = [
    # models
    "BibliographyEntry",
    "BibliographyRegistry",
    "Citation",
    "CitationRegistry",
    "CitationSyntax",
    # parser
    "make_placeholder",
    "parse_citations",
    # bibtex / csl
    "BibTeXSyntaxError",
    "parse_bibtex",
    "parse_csl_json",
    "parse_csl_yaml",
    # loader
    "BibliographyFormat",
    "detect_format",
    "load_bibliography",
    "load_bibliography_file",
    "resolve_bibliography_path",
    # renderer
    "format_bibliography_entry",
    "generate_bibliography",
    "insert_bibliography",
    "render_citations",
]
