"""Console progress reporting for multi-step commands."""

from typing import Protocol, runtime_checkable

import typer


@runtime_checkable
class Reporter(Protocol):
    """Reports the stages of a long-running operation."""

    def start(self, message: str) -> None: ...

    def step(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def end(self) -> None: ...


class ConsoleReporter:
    """Prints progress lines to stdout."""

    def start(self, message: str) -> None:
        typer.echo(f"⚡ {message}...")

    def step(self, message: str) -> None:
        typer.echo(f"  ▶ {message}...")

    def success(self, message: str) -> None:
        typer.echo(f"  ✅ {message}")

    def error(self, message: str) -> None:
        typer.echo(f"  ❌ {message}", err=True)

    def end(self) -> None:
        pass


class NopReporter:
    """Discards all progress."""

    def start(self, message: str) -> None:
        pass

    def step(self, message: str) -> None:
        pass

    def success(self, message: str) -> None:
        pass

    def error(self, message: str) -> None:
        pass

    def end(self) -> None:
        pass
