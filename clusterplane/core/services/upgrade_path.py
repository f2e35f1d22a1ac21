"""
Upgrade path — template transitions are restricted to the allow-list
recorded in the deployment's status.
"""

from __future__ import annotations

from clusterplane.core.models.deployment import ClusterDeployment
from clusterplane.core.models.outcome import CheckResult, ErrorKind

RULE = "upgrade-path"
FORBIDDEN_MESSAGE = "forbidden upgrade sequence: cluster upgrade is forbidden"


def check_upgrade_path(
    old: ClusterDeployment,
    new: ClusterDeployment,
    enforce: bool = True,
) -> CheckResult:
    """Check a template change from ``old`` to ``new``.

    An unchanged template always passes; so does any change when
    enforcement is disabled.
    """
    old_template = old.spec.template
    new_template = new.spec.template
    if old_template == new_template or not enforce:
        return CheckResult.passed(RULE)

    if new_template in old.status.available_upgrades:
        return CheckResult.passed(RULE)

    return CheckResult.rejected(
        RULE,
        ErrorKind.POLICY_VIOLATION,
        FORBIDDEN_MESSAGE,
        warnings=[
            f"Cluster can't be upgraded from {old_template} to {new_template}. "
            "This upgrade sequence is not allowed"
        ],
    )
