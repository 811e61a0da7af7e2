"""Rich console output helpers."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def info(msg: str) -> None:
    """Print an info message."""
    console.print(f"[green]\\[INFO][/green] {msg}")


def ok(msg: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {msg}")


def warn(msg: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]\\[WARN][/yellow] {msg}")


def error(msg: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]\\[ERROR][/red] {msg}")


def step(title: str) -> None:
    """Print a pipeline step header."""
    console.print(f"\n[blue]==>[/blue] [bold]{title}[/bold]")


def section(title: str) -> None:
    """Print a section header."""
    console.print(f"\n[bold]=== {title} ===[/bold]")


def detail(msg: str) -> None:
    """Print an indented detail line."""
    console.print(f"  {msg}", highlight=False)


def panel(content: str, title: str | None = None) -> None:
    """Print content in a panel."""
    console.print(Panel(content, title=title))


def create_table(title: str, columns: list[str]) -> Table:
    """Create a table with the given columns."""
    table = Table(title=title)
    for col in columns:
        table.add_column(col)
    return table


def print_table(table: Table) -> None:
    """Print a table."""
    console.print(table)
