"""
Rich 终端报告器 - 使用 Rich 库输出表格
"""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from mdprep.citations.models import BibliographyEntry, BibliographyRegistry
from mdprep.metadata.models import MetadataList

# 值超过这个长度时截断显示
MAX_VALUE_WIDTH = 60


def _shorten(value: str | None, width: int = MAX_VALUE_WIDTH) -> str:
    if not value:
        return "[dim]-[/dim]"
    value = " ".join(value.split())
    if len(value) > width:
        return escape(value[:width - 1] + "…")
    return escape(value)


class RichReporter:
    """Rich 终端报告器"""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def report_metadata(self, metadata: MetadataList, source: str) -> None:
        """打印元数据表"""
        self.console.print()
        self.console.print(Panel(
            f"[bold cyan]{escape(source)}[/bold cyan]\n"
            f"[dim]{len(metadata)} metadata items[/dim]",
            title="📋 Metadata",
            border_style="cyan",
        ))

        if not metadata:
            self.console.print("[yellow]No metadata found[/yellow]")
            return

        table = Table(show_header=True, header_style="bold")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Key", style="cyan")
        table.add_column("Value")

        for i, item in enumerate(metadata, 1):
            table.add_row(str(i), escape(item.key), _shorten(item.value))

        self.console.print(table)

    def report_bibliography(self, registry: BibliographyRegistry, sources: list[str]) -> None:
        """打印参考文献表"""
        self.console.print()
        self.console.print(Panel(
            "\n".join(f"[bold cyan]{escape(source)}[/bold cyan]" for source in sources)
            + f"\n[dim]{len(registry)} entries[/dim]",
            title="📚 Bibliography",
            border_style="cyan",
        ))

        if not registry:
            self.console.print("[yellow]No bibliography entries found[/yellow]")
            return

        table = Table(show_header=True, header_style="bold")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Type", style="dim")
        table.add_column("Author")
        table.add_column("Year", justify="right")
        table.add_column("Title")

        for entry in registry:
            self._add_entry_row(table, entry)

        self.console.print(table)

    def _add_entry_row(self, table: Table, entry: BibliographyEntry) -> None:
        table.add_row(
            escape(entry.id),
            entry.type or "-",
            _shorten(entry.author, 30),
            entry.year or "-",
            _shorten(entry.title),
        )
