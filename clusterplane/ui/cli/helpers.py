"""
CLI shared helpers.

Every command opens the workspace the same way and reports load
failures the same way.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from clusterplane.core.context import Workspace, open_workspace
from clusterplane.core.errors import ConfigError, StoreError


def workspace_from(ctx: click.Context) -> Workspace:
    """Open (once per invocation) the workspace named by the global options."""
    cached = ctx.obj.get("workspace")
    if cached is not None:
        return cached

    config_path: Path | None = ctx.obj.get("config_path")
    state_dir: Path | None = ctx.obj.get("state_dir")
    try:
        workspace = open_workspace(config_path, state_dir)
    except (ConfigError, StoreError) as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    ctx.obj["workspace"] = workspace
    return workspace


def read_input(path: str) -> str:
    """Read a manifest file, ``-`` meaning stdin."""
    if path == "-":
        return click.get_text_stream("stdin").read()
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        click.secho(f"❌ Cannot read {path}: {e}", fg="red", err=True)
        sys.exit(1)
