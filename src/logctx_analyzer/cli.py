"""CLI entry point for logctx-analyzer."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from logctx_analyzer import __version__
from logctx_analyzer.config import ConfigError, RuleConfig, find_config, load_config
from logctx_analyzer.render import RENDERERS
from logctx_analyzer.scanner import scan

# Exit status when diagnostics were reported
EXIT_DIAGNOSTICS = 3


@click.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True, resolve_path=True))
@click.option(
    "-f", "--format", "fmt",
    type=click.Choice(sorted(RENDERERS), case_sensitive=False),
    default="text",
    help="Output format (default: text).",
)
@click.option(
    "-c", "--config", "config_path",
    type=click.Path(dir_okay=False, resolve_path=True),
    default=None,
    help="Config file (pyproject.toml or .logctx.yml). Searched upward from the first path by default.",
)
@click.option(
    "-o", "--output",
    type=click.Path(resolve_path=True),
    default=None,
    help="Output file path. Defaults to stdout.",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose logging.")
@click.version_option(version=__version__)
def main(
    paths: tuple[str, ...],
    fmt: str,
    config_path: str | None,
    output: str | None,
    verbose: bool,
) -> None:
    """Report zerolog events finished without .ctx(ctx) in Python sources."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s %(levelname)s: %(message)s",
    )

    targets = [Path(p) for p in paths]
    try:
        config = _load(config_path, targets[0])
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    report = scan(targets, config=config)
    text = RENDERERS[fmt.lower()](report)

    if output:
        Path(output).write_text(text + "\n")
        click.echo(f"Report written to {output}", err=True)
    elif text:
        click.echo(text)

    if not report.passed:
        sys.exit(EXIT_DIAGNOSTICS)


def _load(config_path: str | None, first_target: Path) -> RuleConfig:
    if config_path:
        return load_config(Path(config_path))
    return load_config(find_config(first_target))


if __name__ == "__main__":
    main()
