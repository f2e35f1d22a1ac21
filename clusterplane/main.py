"""
clusterplane — CLI entrypoint.

Usage:
    clusterplane --help
    clusterplane apply -f fleet.yaml
    clusterplane reconcile
    clusterplane serve --port 8443
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from clusterplane import __version__
from clusterplane.core.observability.logging_config import resolve_level, setup_from_env


@click.group()
@click.version_option(version=__version__, prog_name="clusterplane")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to clusterplane.yml (default: auto-detect).",
)
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory holding the object store and ledger (overrides the config).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    state_dir: str | None,
) -> None:
    """clusterplane — admission and lifecycle for ClusterDeployments."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["state_dir"] = Path(state_dir) if state_dir else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_from_env(resolve_level(debug=debug, verbose=verbose, quiet=quiet), debug=debug)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def providers(ctx: click.Context, as_json: bool) -> None:
    """List infrastructure providers and the identity kinds they accept."""
    from clusterplane.ui.cli.helpers import workspace_from

    workspace = workspace_from(ctx)
    catalog = workspace.catalog
    assert catalog is not None

    if as_json:
        click.echo(json.dumps(catalog.to_dict(), indent=2))
        return

    prefix = workspace.settings.providers.infra_prefix
    click.secho(f"Providers ({len(catalog)}), referenced as {prefix}<name>:", fg="cyan", bold=True)
    for name in catalog.providers():
        kinds = catalog.lookup(name) or frozenset()
        click.echo(f"   • {name:<16} {', '.join(sorted(kinds))}")


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", "-p", default=8443, type=int, help="Port number.")
@click.option("--tls-cert", default=None, type=click.Path(exists=True, dir_okay=False), help="TLS certificate.")
@click.option("--tls-key", default=None, type=click.Path(exists=True, dir_okay=False), help="TLS private key.")
@click.pass_context
def serve(
    ctx: click.Context,
    host: str,
    port: int,
    tls_cert: str | None,
    tls_key: str | None,
) -> None:
    """Serve the admission webhooks (/validate, /mutate)."""
    from clusterplane.ui.cli.helpers import workspace_from
    from clusterplane.ui.web.server import create_app, run_server

    if bool(tls_cert) != bool(tls_key):
        raise click.UsageError("--tls-cert and --tls-key must be given together")

    workspace = workspace_from(ctx)
    app = create_app(workspace)
    debug = ctx.obj.get("debug", False)
    scheme = "https" if tls_cert else "http"

    click.echo()
    click.secho("⚡ clusterplane — admission webhook", bold=True)
    click.echo(f"   Endpoint: {scheme}://{host}:{port}/validate")
    click.echo(f"   State:    {workspace.state_dir}")
    if debug:
        click.secho("   Logging: DEBUG (all output)", fg="yellow")
    click.echo()

    ssl_context = (tls_cert, tls_key) if tls_cert and tls_key else None
    run_server(app, host=host, port=port, debug=debug, ssl_context=ssl_context)


# ── Register commands from clusterplane/ui/cli/ ──────────────────

from clusterplane.ui.cli.admission import admit, default
from clusterplane.ui.cli.controller import reconcile
from clusterplane.ui.cli.objects import apply, delete, get

cli.add_command(apply)
cli.add_command(get)
cli.add_command(delete)
cli.add_command(admit)
cli.add_command(default)
cli.add_command(reconcile)


if __name__ == "__main__":
    cli()
