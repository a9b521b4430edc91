"""Command-line interface for log-redactor.

Provides commands for scrubbing JSON log contexts and inspecting how
values are classified.

Commands:
    redact       Redact a JSON document or NDJSON log stream
    score        Show entropy and redaction decisions for sample values
    show-config  Print the effective redaction settings

Configuration:
    Supports config files: log-redactor.toml, .redactor.yml, etc.
    LOG_REDACTOR_* environment variables override config file values.
    CLI flags override both.
"""

from __future__ import annotations

import json
import sys
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import NonRedactableObjectBehavior, RedactionConfig
from .config_loader import merge_cli_with_config, resolve_settings
from .entropy import EntropyScorer
from .patterns import is_excluded
from .policy import classify
from .redactor import RedactionResult, Redactor

# Initialize CLI app
app = typer.Typer(
    name="log-redactor",
    help="""Redact sensitive values from structured log contexts.

Reads JSON or NDJSON, replaces secrets, PII and oversized blobs, and writes
the redacted result.

Examples:
    log-redactor redact context.json
    cat app.log | log-redactor redact --jsonl
    log-redactor score "xK9fP2mN7qR4sT6vW8yB3dF5gH1jL0aZ"
""",
    add_completion=False,
    no_args_is_help=True,
)

# Data goes to stdout; status and errors go to stderr
console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"log-redactor version {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Redact sensitive values from structured log contexts."""


def load_settings(config_file: Path | None) -> dict[str, Any]:
    """Load file + environment settings, announcing the file used."""
    settings, used = resolve_settings(config_path=config_file)
    if used is not None:
        console.print(f"[dim]Using config: {used.name}[/dim]")
    return settings


def open_input(input_file: Path | None) -> AbstractContextManager[TextIO]:
    """Open the input file, or stdin when None or '-'. Stdin is left open."""
    if input_file is None or str(input_file) == "-":
        return nullcontext(sys.stdin)
    return open(input_file, encoding="utf-8")


def open_output(output: Path | None) -> AbstractContextManager[TextIO]:
    """Open the output file, or stdout when None. Stdout is left open."""
    if output is None:
        return nullcontext(sys.stdout)
    return open(output, "w", encoding="utf-8")


@dataclass
class RedactionSummary:
    """Totals reported after a redact run."""

    documents: int = 0
    redacted: int = 0
    skipped: int = 0
    totals: dict[str, int] = field(default_factory=dict)

    def add(self, result: RedactionResult) -> None:
        self.documents += 1
        self.redacted += int(result.was_redacted)
        for reason, count in result.counts.items():
            self.totals[reason] = self.totals.get(reason, 0) + count


def redact_lines(
    redactor: Redactor,
    source: TextIO,
    sink: TextIO,
    summary: RedactionSummary,
) -> None:
    """
    Redact an NDJSON stream one line at a time.

    Each redacted line is written and flushed as soon as it is read, so
    unbounded streams (tail -f) produce output as they go. Invalid lines
    are skipped with a warning.
    """
    for line_no, line in enumerate(source, start=1):
        if not line.strip():
            continue
        try:
            document = json.loads(line)
        except json.JSONDecodeError as e:
            console.print(f"[yellow]Warning: Skipping line {line_no}: {e}[/yellow]")
            summary.skipped += 1
            continue

        result = redactor.redact_with_result(document)
        summary.add(result)
        sink.write(dump_json(result.value, None) + "\n")
        sink.flush()


def dump_json(value: Any, indent: int | None) -> str:
    """Serialize redacted output; non-JSON values are stringified."""
    return json.dumps(value, indent=indent, ensure_ascii=False, default=str)


@app.command()
def redact(
    input_file: Path | None = typer.Argument(
        None,
        help="JSON file to redact. Reads stdin when omitted or '-'.",
        dir_okay=False,
    ),
    # === Configuration File ===
    config_file: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file (log-redactor.toml or .redactor.yml).",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    # === Input/Output ===
    jsonl: bool = typer.Option(
        False,
        "--jsonl",
        help="Treat input as NDJSON: one JSON document per line.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write output to this file instead of stdout.",
    ),
    indent: int | None = typer.Option(
        None,
        "--indent",
        help="Pretty-print JSON output with this indent (ignored with --jsonl).",
    ),
    # === Redaction Options ===
    replacement: str | None = typer.Option(
        None,
        "--replacement",
        "-r",
        help="Replacement text for redacted values. [default: [REDACTED]]",
    ),
    safe_key: list[str] | None = typer.Option(
        None,
        "--safe-key",
        help="Additional key that is never redacted (repeatable).",
    ),
    blocked_key: list[str] | None = typer.Option(
        None,
        "--blocked-key",
        help="Additional key that is always redacted (repeatable).",
    ),
    max_value_length: int | None = typer.Option(
        None,
        "--max-value-length",
        help="Redact strings longer than this. [default: 20000]",
    ),
    max_object_size: int | None = typer.Option(
        None,
        "--max-object-size",
        help="Collapse containers with more entries than this. [default: 100]",
    ),
    no_entropy: bool = typer.Option(
        False,
        "--no-entropy",
        help="Disable entropy-based detection.",
    ),
    entropy_threshold: float | None = typer.Option(
        None,
        "--entropy-threshold",
        help="Entropy (bits per character) at which values are redacted. [default: 4.8]",
    ),
    no_mark: bool = typer.Option(
        False,
        "--no-mark",
        help="Don't add the _redacted marker to redacted documents.",
    ),
    track_keys: bool = typer.Option(
        False,
        "--track-keys",
        help="Add a _redacted_keys list naming the redacted keys.",
    ),
    object_behavior: NonRedactableObjectBehavior | None = typer.Option(
        None,
        "--object-behavior",
        help="What to do with values that can't be converted. [default: preserve]",
    ),
) -> None:
    """Redact a JSON document or NDJSON log stream.

    \b
    EXAMPLES:
      # Redact a single JSON document
      log-redactor redact context.json --indent 2

      # Redact a log stream line by line
      tail -f app.log | log-redactor redact --jsonl

      # Treat customer_ref as sensitive and list what was redacted
      log-redactor redact ctx.json --blocked-key customer_ref --track-keys
    """
    settings = merge_cli_with_config(
        load_settings(config_file),
        replacement=replacement,
        mark_redacted=False if no_mark else None,
        track_redacted_keys=True if track_keys else None,
        max_value_length=max_value_length,
        max_object_size=max_object_size,
        entropy_enabled=False if no_entropy else None,
        entropy_threshold=entropy_threshold,
        safe_keys=safe_key,
        blocked_keys=blocked_key,
        non_redactable_object_behavior=object_behavior.value if object_behavior else None,
    )
    redactor = Redactor(config=RedactionConfig.from_dict(settings))
    summary = RedactionSummary()

    if jsonl:
        try:
            with open_input(input_file) as source, open_output(output) as sink:
                redact_lines(redactor, source, sink, summary)
        except OSError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1) from None
        if summary.skipped:
            console.print(f"[yellow]Skipped {summary.skipped} invalid lines[/yellow]")
    else:
        try:
            with open_input(input_file) as source:
                raw = source.read()
        except OSError as e:
            console.print(f"[red]Error reading input: {e}[/red]")
            raise typer.Exit(1) from None

        try:
            document = json.loads(raw)
        except json.JSONDecodeError as e:
            console.print(f"[red]Error: Input is not valid JSON: {e}[/red]")
            raise typer.Exit(1) from None

        result = redactor.redact_with_result(document)
        summary.add(result)
        try:
            with open_output(output) as sink:
                sink.write(dump_json(result.value, indent) + "\n")
        except OSError as e:
            console.print(f"[red]Error writing output: {e}[/red]")
            raise typer.Exit(1) from None

    if output is not None:
        console.print(f"[green]✓[/green] Wrote {output}")

    console.print(
        f"[green]✓[/green] Redacted {summary.redacted} of {summary.documents} documents"
    )
    if summary.totals:
        console.print("[cyan]Redactions applied:[/cyan]")
        for reason, count in sorted(summary.totals.items(), key=lambda x: (-x[1], x[0])):
            console.print(f"  {reason}: {count}")


@app.command()
def score(
    values: list[str] = typer.Argument(
        ...,
        help="Values to score.",
    ),
    key: str | None = typer.Option(
        None,
        "--key",
        "-k",
        help="Classify the values as if found under this key.",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
) -> None:
    """Show entropy scores and redaction decisions for sample values.

    Useful for tuning the entropy threshold and exclusion patterns.

    \b
    EXAMPLES:
      log-redactor score "550e8400-e29b-41d4-a716-446655440000"
      log-redactor score hunter2 --key password
    """
    config = RedactionConfig.from_dict(load_settings(config_file))
    scorer = EntropyScorer()

    table = Table(title=f"Entropy threshold {config.entropy_threshold} bits")
    table.add_column("Value")
    table.add_column("Length", justify="right")
    table.add_column("Entropy", justify="right")
    table.add_column("Excluded")
    table.add_column("Decision")

    for value in values:
        decision = classify(value, config, key=key, scorer=scorer)
        shown = value if len(value) <= 48 else value[:45] + "..."
        style = "red" if decision.redacts else "green"
        table.add_row(
            shown,
            str(len(value)),
            f"{scorer.score(value):.3f}",
            "yes" if is_excluded(value, config.entropy_exclusion_patterns) else "no",
            f"[{style}]{decision.value}[/{style}]",
        )

    Console().print(table)


@app.command("show-config")
def show_config(
    config_file: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
) -> None:
    """Print the effective redaction settings as JSON."""
    config = RedactionConfig.from_dict(load_settings(config_file))
    sys.stdout.write(dump_json(config.to_dict(), 2) + "\n")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
