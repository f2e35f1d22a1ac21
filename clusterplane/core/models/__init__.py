"""
Domain models — Pydantic types for the control plane.

All models are re-exported here for convenient access:

    from clusterplane.core.models import ClusterDeployment, ClusterTemplate, Credential
"""

from clusterplane.core.models.credential import (
    Credential,
    CredentialSpec,
    CredentialStatus,
    IdentityRef,
)
from clusterplane.core.models.deployment import (
    DEPLOYMENT_FINALIZER,
    ClusterDeployment,
    ClusterDeploymentSpec,
    ClusterDeploymentStatus,
    LifecyclePhase,
    ServiceAttachment,
)
from clusterplane.core.models.meta import (
    Condition,
    ObjectKey,
    ObjectMeta,
    get_condition,
    set_condition,
)
from clusterplane.core.models.objects import StoreObject, parse_deployment, parse_object
from clusterplane.core.models.outcome import (
    AdmissionResponse,
    CheckResult,
    ErrorKind,
    ReconcileOutcome,
)
from clusterplane.core.models.template import (
    ClusterTemplate,
    ClusterTemplateStatus,
    HelmChartRef,
    ServiceTemplate,
    ServiceTemplateStatus,
    TemplateSpec,
    TemplateStatus,
)

__all__ = [
    "DEPLOYMENT_FINALIZER",
    # outcome.py
    "AdmissionResponse",
    "CheckResult",
    # deployment.py
    "ClusterDeployment",
    "ClusterDeploymentSpec",
    "ClusterDeploymentStatus",
    # template.py
    "ClusterTemplate",
    "ClusterTemplateStatus",
    # meta.py
    "Condition",
    # credential.py
    "Credential",
    "CredentialSpec",
    "CredentialStatus",
    "ErrorKind",
    "HelmChartRef",
    "IdentityRef",
    "LifecyclePhase",
    "ObjectKey",
    "ObjectMeta",
    "ReconcileOutcome",
    "ServiceAttachment",
    "ServiceTemplate",
    "ServiceTemplateStatus",
    # objects.py
    "StoreObject",
    "TemplateSpec",
    "TemplateStatus",
    "get_condition",
    "parse_deployment",
    "parse_object",
    "set_condition",
]
