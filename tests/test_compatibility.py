"""
Tests for Kubernetes version compatibility between a cluster and its services.
"""

from clusterplane.core.models import ErrorKind, ServiceAttachment
from clusterplane.core.services.compatibility import COMPATIBILITY_WARNING, check_compatibility


def _svc(template: str, disable: bool = False) -> ServiceAttachment:
    return ServiceAttachment(template=template, disable=disable)


class TestCheckCompatibility:
    def test_passes_without_cluster_version(self, make_service_template):
        tpl = make_service_template("ingress", constraint=">=9.0.0")
        result = check_compatibility("", [_svc("ingress")], {"ingress": tpl})
        assert result.ok

    def test_passes_without_enabled_services(self, make_service_template):
        tpl = make_service_template("ingress", constraint=">=1.30.0")
        result = check_compatibility("1.29.0", [_svc("ingress", disable=True)], {"ingress": tpl})
        assert result.ok

    def test_satisfied_constraint(self, make_service_template):
        tpl = make_service_template("ingress", constraint=">=1.28.0,<1.30.0")
        result = check_compatibility("1.29.0", [_svc("ingress")], {"ingress": tpl})
        assert result.ok
        assert result.warnings == []

    def test_empty_constraint_is_unconstrained(self, make_service_template):
        tpl = make_service_template("ingress")
        assert check_compatibility("1.29.0", [_svc("ingress")], {"ingress": tpl}).ok

    def test_violation(self, make_service_template):
        tpl = make_service_template("ingress", constraint=">=1.30.0")
        result = check_compatibility(
            "1.29.0", [_svc("ingress")], {"ingress": tpl}, deployment_ref="default/prod-1"
        )
        assert result.failed
        assert result.reason == ErrorKind.CONSTRAINT_VIOLATION
        assert result.warnings == [COMPATIBILITY_WARNING]
        assert "1.29.0" in result.message
        assert ">=1.30.0" in result.message
        assert "default/ingress" in result.message

    def test_first_failing_service_is_reported(self, make_service_template):
        templates = {
            "a": make_service_template("a", constraint=">=1.0.0"),
            "b": make_service_template("b", constraint="<1.0.0"),
            "c": make_service_template("c", constraint="<0.1.0"),
        }
        result = check_compatibility(
            "1.29.0", [_svc("a"), _svc("b"), _svc("c")], templates, deployment_ref="default/prod-1"
        )
        assert result.failed
        assert "default/b" in result.message
        assert "default/c" not in result.message

    def test_disabled_service_is_ignored(self, make_service_template):
        templates = {
            "ok": make_service_template("ok", constraint=">=1.0.0"),
            "bad": make_service_template("bad", constraint="<1.0.0"),
        }
        result = check_compatibility("1.29.0", [_svc("ok"), _svc("bad", disable=True)], templates)
        assert result.ok

    def test_missing_service_template(self):
        result = check_compatibility("1.29.0", [_svc("ghost")], {"ghost": None}, "team-a/prod")
        assert result.reason == ErrorKind.NOT_FOUND
        assert "team-a/ghost" in result.message
        assert result.warnings == [COMPATIBILITY_WARNING]

    def test_unparseable_cluster_version_is_internal(self, make_service_template):
        tpl = make_service_template("ingress", constraint=">=1.0.0")
        result = check_compatibility("one-point-two", [_svc("ingress")], {"ingress": tpl})
        assert result.reason == ErrorKind.INTERNAL
        assert result.warnings == [COMPATIBILITY_WARNING]

    def test_unparseable_constraint_is_internal(self, make_service_template):
        tpl = make_service_template("ingress", constraint=">=banana")
        result = check_compatibility("1.29.0", [_svc("ingress")], {"ingress": tpl})
        assert result.reason == ErrorKind.INTERNAL
