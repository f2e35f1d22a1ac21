"""
CLI command for reconciliation.

Thin wrapper over ``clusterplane.core.use_cases.reconcile``.

Usage::

    clusterplane reconcile                 # every deployment
    clusterplane reconcile team-a/prod-1   # one deployment
    clusterplane reconcile --workers 4 --json
"""

from __future__ import annotations

import json
import sys

import click

from clusterplane.core.models.meta import ObjectKey
from clusterplane.ui.cli.helpers import workspace_from

_ACTION_STYLE = {
    "done": ("✓", "green"),
    "requeue": ("↻", "cyan"),
    "requeue_after": ("⏳", "yellow"),
    "fatal": ("✗", "red"),
}


@click.command()
@click.argument("refs", nargs=-1)
@click.option("-n", "--namespace", default="default", help="Namespace for bare names.")
@click.option("--workers", default=1, type=int, help="Deployments reconciled in parallel.")
@click.option("--max-rounds", default=50, type=int, help="Upper bound on passes per deployment.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def reconcile(
    ctx: click.Context,
    refs: tuple[str, ...],
    namespace: str,
    workers: int,
    max_rounds: int,
    as_json: bool,
) -> None:
    """Drive ClusterDeployments toward their rendered state.

    Rendered manifests are written under <state_dir>/rendered/.
    """
    from clusterplane.core.use_cases.reconcile import run_reconcile

    workspace = workspace_from(ctx)
    keys = [ObjectKey.parse("ClusterDeployment", ref, namespace) for ref in refs]
    report = run_reconcile(workspace, keys or None, workers=workers, max_rounds=max_rounds)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    elif not report.outcomes:
        click.echo("Nothing to reconcile.")
    else:
        verbose = ctx.obj.get("verbose", False)
        seen: set[ObjectKey] = set()
        # Last outcome per deployment, or every pass with --verbose
        for key, outcome in reversed(report.outcomes):
            if key in seen and not verbose:
                continue
            seen.add(key)
            icon, color = _ACTION_STYLE.get(outcome.action, ("•", "white"))
            delay = f" (in {outcome.delay:.0f}s)" if outcome.action == "requeue_after" else ""
            click.secho(f"{icon} {key.namespace}/{key.name}: {outcome.action}{delay} {outcome.message}", fg=color)

    if report.fatal:
        sys.exit(1)
