"""Debug output sink passed explicitly through call chains."""
from typing import Any, Dict, Optional

from rich.console import Console
from rich.markup import escape


class Diagnostics:
    """Passive sink for debug messages with bound key/value context.

    Nothing here is global: callers create one sink per run and hand it (or a
    child from :meth:`bind`) to the functions that want to report progress.
    A disabled sink swallows every message.
    """

    def __init__(self, console: Optional[Console] = None, enabled: bool = False,
                 fields: Optional[Dict[str, Any]] = None):
        self.console = console or Console(stderr=True)
        self.enabled = enabled
        self.fields = dict(fields or {})

    def bind(self, **fields: Any) -> "Diagnostics":
        """Return a child sink that prefixes ``fields`` to every message."""
        merged = dict(self.fields)
        merged.update(fields)
        return Diagnostics(self.console, self.enabled, merged)

    def debug(self, message: str, **fields: Any) -> None:
        if not self.enabled:
            return
        context = dict(self.fields)
        context.update(fields)
        rendered = " ".join(f"{key}={value!r}" for key, value in context.items())
        if rendered:
            self.console.print(f"[dim]Debug:[/] {escape(message)} [dim]{escape(rendered)}[/]")
        else:
            self.console.print(f"[dim]Debug:[/] {escape(message)}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]Warning: {escape(message)}[/yellow]")

    def error(self, message: str) -> None:
        self.console.print(f"[red]Error:[/red] {escape(message)}")


def quiet() -> Diagnostics:
    """Return a disabled sink, the default for library calls."""
    return Diagnostics(enabled=False)
