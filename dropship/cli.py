"""Command line entry point.

    dropship production dist/app.tar.gz
    dropship dist/ --host 10.0.0.1 --user deployer --remote-path ./build --key ~/.ssh/deploy
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from rich.console import Console

from dropship.artifact import collect
from dropship.config import DeploymentConfig, resolve_config, resolve_target
from dropship.errors import ConfigurationError
from dropship.logging import LogConfig, setup_logging, teardown_logging
from dropship.pipeline import Deployed, DeployStage, Failed

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dropship",
        description="Upload build artifacts over SFTP and record a GitHub deployment",
    )
    parser.add_argument("paths", nargs="+", metavar="[TARGET] PATH",
                        help="Optional target name from dropship.toml, then files or directories")
    parser.add_argument("--host")
    parser.add_argument("--port", type=int)
    parser.add_argument("--user")
    parser.add_argument("--remote-path", dest="remotePath")
    parser.add_argument("--key", help="Private key file")
    parser.add_argument("--revision")
    parser.add_argument("--environment")
    parser.add_argument("--description")
    parser.add_argument("--pkg-path", dest="pkgPath", help="package.json with repository.url")
    parser.add_argument("--github-token", dest="githubToken")
    parser.add_argument("--config-dir", type=Path, default=None,
                        help="Directory holding dropship.toml (default: cwd)")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", default=None)
    return parser


_OPTION_KEYS = (
    "host", "port", "user", "remotePath", "key", "revision",
    "environment", "description", "pkgPath", "githubToken",
)


def _split_target(paths: list[str]) -> tuple[str | None, list[str]]:
    head, *rest = paths
    if rest and not Path(head).exists():
        return head, rest
    return None, paths


def resolve(args: argparse.Namespace) -> tuple[DeploymentConfig, list[str]]:
    overrides: dict[str, Any] = {
        key: getattr(args, key) for key in _OPTION_KEYS if getattr(args, key) is not None
    }
    target, paths = _split_target(args.paths)
    if target is None:
        return resolve_config(overrides), paths
    return resolve_target(target, overrides, project_dir=args.config_dir), paths


async def run(stage: DeployStage, paths: Sequence[str], console: Console) -> int:
    failures = 0
    async for outcome in stage.run(collect(paths)):
        match outcome:
            case Deployed(source=source, remote_path=remote):
                console.print(f"[green]✓[/green] {source.path} → {remote}")
            case Failed(artifact=artifact, error=error):
                failures += 1
                console.print(f"[red]✗[/red] {artifact.path}: {error}")
    return EXIT_FAILED if failures else EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    console = Console(stderr=True)

    try:
        config, paths = resolve(args)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return EXIT_CONFIG

    missing = [p for p in paths if not Path(p).exists()]
    if missing:
        console.print(f"[red]No such file:[/red] {', '.join(missing)}")
        return EXIT_CONFIG

    handler_ids = setup_logging(LogConfig(level=args.log_level, file=args.log_file))
    try:
        return asyncio.run(run(DeployStage(config), paths, console))
    except OSError as e:
        console.print(f"[red]Cannot read input:[/red] {e}")
        return EXIT_FAILED
    finally:
        teardown_logging(handler_ids)


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
