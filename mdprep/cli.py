"""
CLI 入口模块 - 使用 Typer 构建命令行界面

命令：
1. convert  把 Markdown 转换为 HTML（元数据、变量替换、引用）
2. meta     输出合并后的元数据
3. bib      列出参考文献文件中的条目
4. version  显示版本
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from mdprep.config import Options, default_metadata_file, options_for_mode, parse_mode
from mdprep.metadata import (
    MetadataList,
    extract_metadata,
    load_metadata_file,
    merge_metadata,
    parse_command_metadata,
)
from mdprep.citations import load_bibliography
from mdprep.pipeline import convert as convert_document
from mdprep.reporters import JsonReporter, RichReporter

# 创建 Typer 应用实例
app = typer.Typer(
    name="mdprep",
    help="mdprep: Markdown metadata, variables and citations to HTML.",
    add_completion=False,
)

# Rich Console 用于输出
console = Console()

# 日志输出到 stderr，避免混入 HTML
err_console = Console(stderr=True)

STDIN_MARKER = "-"


def setup_logging(verbose: bool) -> None:
    """WARNING 级别，--verbose 时为 DEBUG"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def read_input(source: str) -> str:
    """
    读取输入文档，"-" 表示标准输入

    Raises:
        typer.Exit: 文件无法读取
    """
    if source == STDIN_MARKER:
        return sys.stdin.read()

    try:
        return Path(source).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        console.print(f"[red]Error:[/red] Cannot read {source}: {e}")
        raise typer.Exit(1)


def load_file_metadata(meta_file: Optional[str]) -> MetadataList:
    """--meta-file 指定的文件，未指定时使用默认配置文件"""
    if meta_file:
        return load_metadata_file(meta_file)
    default = default_metadata_file()
    if default is not None:
        logging.getLogger(__name__).debug(f"Using metadata file {default}")
        return load_metadata_file(default)
    return MetadataList()


def parse_meta_args(meta: Optional[list[str]]) -> MetadataList:
    """多个 --meta 参数按顺序合并，后出现的覆盖先出现的"""
    return merge_metadata(*(parse_command_metadata(arg) for arg in meta or []))


def _flag(value: bool) -> str:
    return "true" if value else "false"


@app.command()
def convert(
    source: str = typer.Argument(
        ...,
        help="Markdown file to convert ('-' for stdin)",
    ),
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write HTML to this file instead of stdout",
    ),
    mode: str = typer.Option(
        "unified",
        "--mode",
        "-m",
        help="Processing mode: commonmark, gfm, multimarkdown (mmd), kramdown, unified",
    ),
    meta: Optional[list[str]] = typer.Option(
        None,
        "--meta",
        help="Metadata as KEY=VALUE[,KEY=VALUE...] (repeatable)",
    ),
    meta_file: Optional[str] = typer.Option(
        None,
        "--meta-file",
        help="Metadata file (YAML, Pandoc or MultiMarkdown header)",
    ),
    bibliography: Optional[list[str]] = typer.Option(
        None,
        "--bibliography",
        "-b",
        help="Bibliography file: .bib, .json or .yaml (repeatable)",
    ),
    csl: Optional[str] = typer.Option(
        None,
        "--csl",
        help="CSL style file (enables citations)",
    ),
    nocite: Optional[str] = typer.Option(
        None,
        "--nocite",
        help="Comma-separated keys to list without citing ('*' for all)",
    ),
    no_bibliography: bool = typer.Option(
        False,
        "--no-bibliography",
        help="Do not append the references block",
    ),
    link_citations: bool = typer.Option(
        False,
        "--link-citations",
        help="Link citations to their bibliography entries",
    ),
    show_tooltips: bool = typer.Option(
        False,
        "--show-tooltips",
        help="Add the full reference as a title tooltip",
    ),
    transforms: Optional[bool] = typer.Option(
        None,
        "--transforms/--no-transforms",
        help="Enable [%key:transform] chains in metadata variables",
    ),
    base_dir: Optional[str] = typer.Option(
        None,
        "--base-dir",
        help="Base directory for relative bibliography paths",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show detailed output",
    ),
) -> None:
    """
    Convert a Markdown document to HTML.

    Examples:
        mdprep convert paper.md -o paper.html
        mdprep convert paper.md --bibliography refs.bib --link-citations
        cat notes.md | mdprep convert - --meta "author=Jane Doe"
    """
    setup_logging(verbose)

    try:
        processing_mode = parse_mode(mode)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    text = read_input(source)

    options: Options = options_for_mode(processing_mode)
    options.bibliography_files = list(bibliography or [])
    if options.bibliography_files:
        options.enable_citations = True
    if base_dir:
        options.base_directory = base_dir
    elif source != STDIN_MARKER:
        options.base_directory = str(Path(source).resolve().parent)

    # 命令行开关作为最高优先级的元数据，模式切换后依然生效
    cli_metadata = parse_meta_args(meta)
    if csl:
        cli_metadata.append("csl", csl)
    if nocite:
        cli_metadata.append("nocite", nocite)
    if no_bibliography:
        cli_metadata.append("suppress-bibliography", "true")
    if link_citations:
        cli_metadata.append("link-citations", "true")
    if show_tooltips:
        cli_metadata.append("show-tooltips", "true")
    if transforms is not None:
        cli_metadata.append("transforms", _flag(transforms))

    if verbose:
        err_console.print(f"[dim]Converting {source} ({processing_mode.value} mode)[/dim]")

    result = convert_document(
        text,
        options=options,
        file_metadata=load_file_metadata(meta_file),
        cli_metadata=cli_metadata,
    )

    if verbose:
        err_console.print(f"[dim]  - {len(result.metadata)} metadata items[/dim]")
        err_console.print(f"[dim]  - {len(result.citations)} citations[/dim]")

    if output:
        try:
            Path(output).write_text(result.html, encoding="utf-8")
        except OSError as e:
            console.print(f"[red]Error:[/red] Cannot write {output}: {e}")
            raise typer.Exit(1)
        if verbose:
            err_console.print(f"[dim]Wrote {output}[/dim]")
    else:
        typer.echo(result.html, nl=False)


@app.command()
def meta(
    source: str = typer.Argument(
        ...,
        help="Markdown file to read metadata from ('-' for stdin)",
    ),
    meta_args: Optional[list[str]] = typer.Option(
        None,
        "--meta",
        help="Metadata as KEY=VALUE[,KEY=VALUE...] (repeatable)",
    ),
    meta_file: Optional[str] = typer.Option(
        None,
        "--meta-file",
        help="Metadata file merged below the document's own metadata",
    ),
    output_format: str = typer.Option(
        "rich",
        "--format",
        "-f",
        help="Output format: rich, json or yaml",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show detailed output",
    ),
) -> None:
    """
    Show the merged metadata of a document.

    Examples:
        mdprep meta paper.md
        mdprep meta paper.md --meta-file defaults.yml -f yaml
    """
    setup_logging(verbose)

    if output_format not in ("rich", "json", "yaml"):
        console.print(f"[red]Error:[/red] Unknown format '{output_format}'")
        raise typer.Exit(1)

    text = read_input(source)
    document_metadata, _ = extract_metadata(text)
    metadata = merge_metadata(
        load_file_metadata(meta_file),
        document_metadata,
        parse_meta_args(meta_args),
    )

    if output_format == "yaml":
        typer.echo(metadata.to_front_matter(), nl=False)
    elif output_format == "json":
        JsonReporter().report_metadata(metadata, source)
    else:
        RichReporter(console).report_metadata(metadata, source)


@app.command()
def bib(
    files: list[str] = typer.Argument(
        ...,
        help="Bibliography files (.bib, .json, .yaml)",
    ),
    base_dir: Optional[str] = typer.Option(
        None,
        "--base-dir",
        help="Base directory for relative paths",
    ),
    output_format: str = typer.Option(
        "rich",
        "--format",
        "-f",
        help="Output format: rich or json",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show detailed output",
    ),
) -> None:
    """
    List the entries of one or more bibliography files.

    Examples:
        mdprep bib refs.bib
        mdprep bib refs.bib extra.yaml -f json
    """
    setup_logging(verbose)

    if output_format not in ("rich", "json"):
        console.print(f"[red]Error:[/red] Unknown format '{output_format}'")
        raise typer.Exit(1)

    registry = load_bibliography(files, base_dir)

    if output_format == "json":
        JsonReporter().report_bibliography(registry, files)
    else:
        RichReporter(console).report_bibliography(registry, files)


@app.command()
def version() -> None:
    """Show the version of mdprep."""
    from mdprep import __version__
    console.print(f"[bold]mdprep[/bold] v{__version__}")
    console.print("[dim]Markdown metadata, variables and citations.[/dim]")


if __name__ == "__main__":
    app()
