"""
Defaulting — fill in configuration from the template when the user
supplied none.

A defaulted configuration always comes back with ``dry_run`` forced on:
the user has to review it and switch dry-run off before anything is
provisioned.
"""

from __future__ import annotations

import copy
import logging

from clusterplane.core.errors import DefaultingError
from clusterplane.core.models.deployment import ClusterDeployment
from clusterplane.core.models.template import ClusterTemplate
from clusterplane.core.services.template_resolver import check_template_valid

logger = logging.getLogger(__name__)


def needs_defaults(deployment: ClusterDeployment) -> bool:
    """Defaulting only applies without user config and with a template ref."""
    return deployment.spec.config is None and bool(deployment.spec.template)


def apply_defaults(deployment: ClusterDeployment, template: ClusterTemplate) -> ClusterDeployment:
    """Return ``deployment`` with the template's default config applied.

    The input is never mutated.

    Raises:
        DefaultingError: The template is not valid.
    """
    if not needs_defaults(deployment):
        return deployment

    validity = check_template_valid(template.status)
    if validity.failed:
        raise DefaultingError(validity)

    if template.status.config is None:
        return deployment

    defaulted = deployment.model_copy(deep=True)
    defaulted.spec.config = copy.deepcopy(template.status.config)
    defaulted.spec.dry_run = True
    logger.info(
        "Defaulted config of ClusterDeployment %s/%s from template %s (dry-run forced)",
        deployment.namespace, deployment.name, template.name,
    )
    return defaulted
