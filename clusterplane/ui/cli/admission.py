"""
CLI commands for admission — evaluate a deployment without storing it.

Usage::

    clusterplane admit deployment.yaml
    clusterplane admit new.yaml --old current.yaml --json
    clusterplane default deployment.yaml
"""

from __future__ import annotations

import json
import sys

import click
import yaml

from clusterplane.core.errors import BadRequestError
from clusterplane.core.models.outcome import AdmissionResponse
from clusterplane.ui.cli.helpers import read_input, workspace_from


def _single_document(path: str) -> dict:
    from clusterplane.core.use_cases.apply import load_documents

    try:
        documents = load_documents(read_input(path))
    except BadRequestError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)
    if len(documents) != 1:
        click.secho(f"❌ {path}: expected exactly one document, got {len(documents)}", fg="red", err=True)
        sys.exit(1)
    return documents[0]


def _print_response(response: AdmissionResponse) -> None:
    if response.allowed:
        click.secho(f"✓ {response.operation} allowed", fg="green")
    else:
        click.secho(f"✗ {response.operation} denied ({response.reason}): {response.message}", fg="red")
    for warning in response.warnings:
        click.secho(f"   ⚠ {warning}", fg="yellow")


@click.command()
@click.argument("filename")
@click.option("--old", "old_filename", default=None, help="Current object; evaluates an update.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def admit(ctx: click.Context, filename: str, old_filename: str | None, as_json: bool) -> None:
    """Evaluate a ClusterDeployment create (or update) against the store."""
    from clusterplane.core.use_cases.apply import admit as run_admit

    workspace = workspace_from(ctx)
    document = _single_document(filename)
    old_document = _single_document(old_filename) if old_filename else None

    response = run_admit(workspace, document, old_document)

    if as_json:
        click.echo(json.dumps(response.to_dict(), indent=2))
    else:
        _print_response(response)

    if not response.allowed:
        sys.exit(1)


@click.command()
@click.argument("filename")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def default(ctx: click.Context, filename: str, as_json: bool) -> None:
    """Print a ClusterDeployment with its template's defaults filled in."""
    from clusterplane.core.use_cases.apply import default_document

    workspace = workspace_from(ctx)
    document = _single_document(filename)

    result = default_document(workspace, document)
    if not result.response.allowed:
        if as_json:
            click.echo(json.dumps(result.response.to_dict(), indent=2))
        else:
            _print_response(result.response)
        sys.exit(1)

    assert result.deployment is not None
    manifest = result.deployment.to_manifest()
    if as_json:
        click.echo(json.dumps({"changed": result.changed, "object": manifest}, indent=2))
    else:
        click.echo(yaml.safe_dump(manifest, sort_keys=False), nl=False)
