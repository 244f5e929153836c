#!/usr/bin/env python3
"""
wikitree: wiki-link resolution and backlinks for a markdown tree

Usage:
    wikitree tree                          # Show the document tree
    wikitree resolve Target --from a/b.md  # Resolve a label
    wikitree backlinks notes/python        # Who links here
    wikitree listing notes/python          # Outgoing + incoming links
"""

from __future__ import annotations

import asyncio
import difflib
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, NoReturn

import click
from click.exceptions import ClickException, UsageError

from . import __version__ as WIKITREE_VERSION
from .errors import format_error_json


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


# ─────────────────────────────────────────────────────────────────────────────
# Output Formatting
# ─────────────────────────────────────────────────────────────────────────────


def format_table(rows: list[dict], columns: list[str], max_widths: dict | None = None) -> str:
    """Format rows as a simple table."""
    if not rows:
        return ""

    max_widths = max_widths or {}
    widths = {col: len(col) for col in columns}

    def cell(row: dict, col: str) -> str:
        val = str(row.get(col, ""))
        limit = max_widths.get(col, 50)
        if len(val) > limit:
            val = val[: limit - 3] + "..."
        return val

    for row in rows:
        for col in columns:
            widths[col] = max(widths[col], len(cell(row, col)))

    header = "  ".join(col.upper().ljust(widths[col]) for col in columns)
    separator = "  ".join("-" * widths[col] for col in columns)

    lines = [header, separator]
    for row in rows:
        lines.append("  ".join(cell(row, col).ljust(widths[col]) for col in columns))

    return "\n".join(lines)


def output(data, as_json: bool = False):
    """Output data as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        click.echo(data)


def format_tree(nodes: list[dict], prefix: str = "") -> str:
    """Format tree data with box-drawing connectors."""
    lines = []
    for i, node in enumerate(nodes):
        is_last = i == len(nodes) - 1
        connector = "└── " if is_last else "├── "
        if node["type"] == "folder":
            lines.append(f"{prefix}{connector}{node['name']}/")
            extension = "    " if is_last else "│   "
            lines.append(format_tree(node["children"], prefix + extension))
        else:
            lines.append(f"{prefix}{connector}{node['name']}")

    return "\n".join(line for line in lines if line)


# ─────────────────────────────────────────────────────────────────────────────
# Error Handling
# ─────────────────────────────────────────────────────────────────────────────


def _handle_error(ctx: click.Context, error: Exception, exit_code: int = 1) -> NoReturn:
    """Report an error as text or JSON (with --json-errors) and exit."""
    from .errors import ErrorCode, WikitreeError

    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False

    if isinstance(error, WikitreeError):
        if json_errors:
            click.echo(error.to_json(), err=True)
        else:
            click.echo(f"Error: {error.message}", err=True)
    else:
        message = str(error)
        if json_errors:
            code = ErrorCode.STORAGE_ERROR.value if isinstance(error, OSError) else "INTERNAL_ERROR"
            click.echo(format_error_json(code, message), err=True)
        else:
            click.echo(f"Error: {message}", err=True)

    sys.exit(exit_code)


def get_error_code_for_exception(exc: Exception) -> str:
    """Map Click exceptions to error codes."""
    if isinstance(exc, click.MissingParameter):
        return "MISSING_ARGUMENT"
    elif isinstance(exc, click.BadParameter):
        return "INVALID_ARGUMENT"
    elif isinstance(exc, click.NoSuchOption):
        return "UNKNOWN_OPTION"
    elif isinstance(exc, UsageError):
        return "USAGE_ERROR"
    elif isinstance(exc, ClickException):
        return "CLI_ERROR"
    return "UNKNOWN_ERROR"


class JsonErrorGroup(click.Group):
    """Click group that formats errors as JSON when --json-errors is set.

    Also suggests the closest command name on typos.
    """

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except UsageError as e:
            cmd_name = args[0] if args else ""
            if cmd_name and "No such command" in str(e):
                matches = difflib.get_close_matches(
                    cmd_name, self.list_commands(ctx), n=1, cutoff=0.6
                )
                if matches:
                    raise UsageError(f"No such command '{cmd_name}'. Did you mean '{matches[0]}'?")
            raise

    def main(
        self,
        args: Sequence[str] | None = None,
        prog_name: str | None = None,
        complete_var: str | None = None,
        standalone_mode: bool = True,
        **extra: Any,
    ) -> Any:
        """Catch argument parsing errors when --json-errors appears anywhere."""
        argv = list(args) if args is not None else list(sys.argv[1:])
        if "--json-errors" not in argv:
            return super().main(args, prog_name, complete_var, standalone_mode, **extra)

        # Normalize misplaced --json-errors to be a true global flag.
        argv = [a for a in argv if a != "--json-errors"]
        argv.insert(0, "--json-errors")

        try:
            return super().main(argv, prog_name, complete_var, standalone_mode=False, **extra)
        except ClickException as e:
            code = get_error_code_for_exception(e)
            click.echo(format_error_json(code, e.format_message()), err=True)
            raise SystemExit(1)


def _require_root_configured(ctx: click.Context) -> None:
    """Fail fast when no document root is configured."""
    from .core import get_workspace
    from .errors import WikitreeError

    try:
        get_workspace()
    except WikitreeError as exc:
        _handle_error(ctx, exc)


def _run(ctx: click.Context, coro):
    """Run a core coroutine, routing expected failures through _handle_error."""
    from .errors import WikitreeError

    try:
        return run_async(coro)
    except (WikitreeError, OSError) as e:
        _handle_error(ctx, e)


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group(cls=JsonErrorGroup)
@click.version_option(version=WIKITREE_VERSION, prog_name="wikitree")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    help="Document root (default: WIKITREE_ROOT or .wikitree discovery)",
)
@click.option(
    "--json-errors",
    "json_errors",
    is_flag=True,
    help="Output errors as JSON (for programmatic use)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    envvar="WIKITREE_QUIET",
    help="Suppress warnings, show only errors and essential output",
)
@click.pass_context
def cli(ctx: click.Context, root: Path | None, json_errors: bool, quiet: bool):
    """wikitree: resolve [[wiki links]] across a tree of markdown documents.

    \b
    Examples:
      wikitree tree
      wikitree resolve Target --from notes/daily/today
      wikitree links notes/daily/today
      wikitree backlinks notes/python
      wikitree complete pyth
    """
    from ._logging import configure_logging, set_quiet_mode

    configure_logging()

    ctx.ensure_object(dict)
    ctx.obj["json_errors"] = json_errors
    ctx.obj["quiet"] = quiet

    if quiet:
        set_quiet_mode(True)

    if root is not None:
        from .core import set_root

        if not root.is_dir():
            from .errors import WikitreeError

            _handle_error(ctx, WikitreeError.root_not_configured(f"Not a directory: {root}"))
        set_root(root)


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def tree(ctx: click.Context, as_json: bool):
    """Display the document tree.

    \b
    Examples:
      wikitree tree
      wikitree tree --json
    """
    from .core import tree as core_tree

    _require_root_configured(ctx)
    result = _run(ctx, core_tree())

    if as_json:
        output(result, as_json=True)
    else:
        formatted = format_tree(result["tree"])
        if formatted:
            click.echo(formatted)
        click.echo(f"\n{result['documents']} documents")


@cli.command()
@click.argument("label")
@click.option("--from", "source", default="", help="Referencing document path (default: root)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def resolve(ctx: click.Context, label: str, source: str, as_json: bool):
    """Resolve a link label to a canonical document path.

    \b
    Examples:
      wikitree resolve Target --from A/Other
      wikitree resolve /Absolute/Path
    """
    from .core import resolve as core_resolve

    _require_root_configured(ctx)
    result = _run(ctx, core_resolve(label, source))

    if as_json:
        output(result.model_dump(), as_json=True)
    else:
        click.echo(result.path)


@cli.command()
@click.argument("path")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def links(ctx: click.Context, path: str, as_json: bool):
    """Show every link in a document with its resolved target.

    \b
    Examples:
      wikitree links notes/today
    """
    from .core import links as core_links

    _require_root_configured(ctx)
    spans = _run(ctx, core_links(path))

    if as_json:
        output([span.model_dump() for span in spans], as_json=True)
        return

    if not spans:
        click.echo("No links")
        return

    rows = [
        {
            "line": span.span.line + 1,
            "col": span.span.start + 1,
            "label": span.label,
            "target": span.path,
        }
        for span in spans
    ]
    click.echo(format_table(rows, ["line", "col", "label", "target"]))


@cli.command()
@click.argument("path")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def backlinks(ctx: click.Context, path: str, as_json: bool):
    """List documents linking to PATH.

    \b
    Examples:
      wikitree backlinks notes/python
    """
    from .core import backlinks as core_backlinks

    _require_root_configured(ctx)
    sources = _run(ctx, core_backlinks(path))

    if as_json:
        output(sources, as_json=True)
    elif not sources:
        click.echo("No backlinks")
    else:
        for source in sources:
            click.echo(source)


@cli.command()
@click.argument("path")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def listing(ctx: click.Context, path: str, as_json: bool):
    """Show outgoing and incoming links of a document.

    \b
    Examples:
      wikitree listing notes/python --json
    """
    from .core import listing as core_listing

    _require_root_configured(ctx)
    result = _run(ctx, core_listing(path))

    if as_json:
        output(result.model_dump(), as_json=True)
        return

    click.echo(f"Outgoing ({len(result.outgoing)}):")
    for entry in result.outgoing:
        click.echo(f"  {entry.label} -> {entry.path}")
    click.echo(f"Incoming ({len(result.incoming)}):")
    for entry in result.incoming:
        click.echo(f"  {entry.label}")


@cli.command()
@click.argument("prefix", required=False)
@click.option("--line", "line_prefix", help="Current line up to the cursor; completes inside [[")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def complete(ctx: click.Context, prefix: str | None, line_prefix: str | None, as_json: bool):
    """List link-target candidates, oldest documents first.

    \b
    Examples:
      wikitree complete
      wikitree complete pyth
      wikitree complete --line "See [[pyth"
    """
    from .core import completions, get_workspace

    _require_root_configured(ctx)
    if line_prefix is not None:
        candidates = _run(ctx, get_workspace().completions_at(line_prefix))
    else:
        candidates = _run(ctx, completions(prefix))

    if as_json:
        output(candidates, as_json=True)
    elif candidates:
        for candidate in candidates:
            click.echo(candidate)


@cli.command()
@click.argument("path")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def render(ctx: click.Context, path: str, as_json: bool):
    """Render a document to HTML with resolved links.

    \b
    Examples:
      wikitree render notes/python > python.html
    """
    from .core import render as core_render

    _require_root_configured(ctx)
    result = _run(ctx, core_render(path))

    if as_json:
        output({"html": result.html, "links": result.links}, as_json=True)
    else:
        click.echo(result.html, nl=False)


@cli.command()
@click.pass_context
def watch(ctx: click.Context):
    """Watch the document root and rebuild the tree on changes (Ctrl-C to stop)."""
    from .core import get_workspace

    _require_root_configured(ctx)
    workspace = get_workspace()

    async def _watch() -> None:
        snapshot = await workspace.rebuild()
        click.echo(f"Watching {workspace.root} (tree version {snapshot.version})")
        workspace.start_watching()
        try:
            while True:
                await asyncio.sleep(3600)
        finally:
            workspace.stop_watching()

    try:
        _run(ctx, _watch())
    except KeyboardInterrupt:
        click.echo("Stopped")


def main():
    cli()


if __name__ == "__main__":
    main()
