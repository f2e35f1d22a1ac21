"""
CLI commands for stored objects — apply, get, delete.

Thin wrappers over ``clusterplane.core.use_cases.apply``.

Usage::

    clusterplane apply -f fleet.yaml
    clusterplane get clusterdeployments -n team-a
    clusterplane get cd team-a/prod-1 --json
    clusterplane delete cd team-a/prod-1
"""

from __future__ import annotations

import json
import sys

import click
import yaml

from clusterplane.core.errors import BadRequestError, NotFoundError, StoreError
from clusterplane.core.models.meta import ObjectKey
from clusterplane.ui.cli.helpers import read_input, workspace_from

_KIND_ALIASES = {
    "clusterdeployment": "ClusterDeployment",
    "clusterdeployments": "ClusterDeployment",
    "cd": "ClusterDeployment",
    "clustertemplate": "ClusterTemplate",
    "clustertemplates": "ClusterTemplate",
    "ct": "ClusterTemplate",
    "servicetemplate": "ServiceTemplate",
    "servicetemplates": "ServiceTemplate",
    "st": "ServiceTemplate",
    "credential": "Credential",
    "credentials": "Credential",
    "cred": "Credential",
}


def resolve_kind(name: str) -> str:
    kind = _KIND_ALIASES.get(name.lower())
    if kind is None:
        raise click.BadParameter(
            f"unknown kind {name!r} (try one of: cd, ct, st, cred)", param_hint="KIND"
        )
    return kind


# ── Apply ───────────────────────────────────────────────────────


@click.command()
@click.option("-f", "--filename", "filename", required=True, help="Manifest file ('-' for stdin).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def apply(ctx: click.Context, filename: str, as_json: bool) -> None:
    """Admit and store the objects in a (multi-document) YAML file."""
    from clusterplane.core.use_cases.apply import apply_manifests, load_documents

    workspace = workspace_from(ctx)
    try:
        documents = load_documents(read_input(filename))
        result = apply_manifests(workspace, documents)
    except (BadRequestError, StoreError) as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    workspace.save()

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        for item in result.items:
            if item.ok:
                click.secho(f"✓ {item.key} {item.action}", fg="green")
                for warning in item.response.warnings if item.response else []:
                    click.secho(f"   ⚠ {warning}", fg="yellow")
            else:
                assert item.response is not None
                click.secho(f"✗ {item.key} rejected: {item.response.message}", fg="red")
                for warning in item.response.warnings:
                    click.secho(f"   ⚠ {warning}", fg="yellow")

    if not result.ok:
        sys.exit(1)


# ── Get ─────────────────────────────────────────────────────────


@click.command()
@click.argument("kind")
@click.argument("ref", required=False)
@click.option("-n", "--namespace", default=None, help="Only this namespace.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def get(ctx: click.Context, kind: str, ref: str | None, namespace: str | None, as_json: bool) -> None:
    """Show stored objects of KIND, or the single object REF ([ns/]name)."""
    resolved = resolve_kind(kind)
    workspace = workspace_from(ctx)

    if ref:
        key = ObjectKey.parse(resolved, ref, namespace or "default")
        try:
            obj = workspace.store.get(*key)
        except NotFoundError as e:
            click.secho(f"❌ {e}", fg="red", err=True)
            sys.exit(1)
        manifest = obj.to_manifest()
        if as_json:
            click.echo(json.dumps(manifest, indent=2))
        else:
            click.echo(yaml.safe_dump(manifest, sort_keys=False), nl=False)
        return

    objects = workspace.store.list(resolved, namespace)
    if as_json:
        click.echo(json.dumps([o.to_manifest() for o in objects], indent=2))
        return

    if not objects:
        click.echo(f"No {resolved} objects found.")
        return

    for obj in objects:
        click.echo(f"{obj.metadata.namespace:<20} {obj.metadata.name:<30} {_summary(obj)}")


def _summary(obj) -> str:  # type: ignore[no-untyped-def]
    kind = obj.kind
    if kind == "ClusterDeployment":
        marker = " (deleting)" if obj.metadata.deleting else ""
        dry = " dry-run" if obj.spec.dry_run else ""
        return f"{obj.status.phase}{marker}{dry}  template={obj.spec.template}"
    if kind in ("ClusterTemplate", "ServiceTemplate"):
        return "valid" if obj.status.valid else f"invalid: {obj.status.validation_error}"
    return "ready" if obj.status.ready else "not ready"


# ── Delete ──────────────────────────────────────────────────────


@click.command()
@click.argument("kind")
@click.argument("ref")
@click.option("-n", "--namespace", default=None, help="Namespace when REF has none.")
@click.pass_context
def delete(ctx: click.Context, kind: str, ref: str, namespace: str | None) -> None:
    """Request deletion of an object; deployments are finalized by `reconcile`."""
    from clusterplane.core.use_cases.apply import delete_object

    key = ObjectKey.parse(resolve_kind(kind), ref, namespace or "default")
    workspace = workspace_from(ctx)
    try:
        item = delete_object(workspace, *key)
    except StoreError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    workspace.save()
    click.secho(f"✓ {item.key} {item.action}", fg="green")
