"""
Tests for defaulting — template config fills in a missing deployment config.
"""

import pytest

from clusterplane.core.errors import DefaultingError
from clusterplane.core.models import ClusterDeployment, ErrorKind
from clusterplane.core.services.defaulting import apply_defaults, needs_defaults


def _without_config(make_deployment, **kwargs) -> ClusterDeployment:
    d = make_deployment(**kwargs)
    d.spec.config = None
    return d


class TestNeedsDefaults:
    def test_config_present(self, make_deployment):
        assert not needs_defaults(make_deployment())

    def test_config_absent(self, make_deployment):
        assert needs_defaults(_without_config(make_deployment))

    def test_empty_mapping_counts_as_present(self, make_deployment):
        assert not needs_defaults(make_deployment(config={}))

    def test_no_template_reference(self, make_deployment):
        assert not needs_defaults(_without_config(make_deployment, template=""))


class TestApplyDefaults:
    def test_fills_config_and_forces_dry_run(self, make_deployment, make_cluster_template):
        tpl = make_cluster_template(config={"region": "us-west-2", "workers": {"count": 3}})
        d = _without_config(make_deployment)

        out = apply_defaults(d, tpl)

        assert out.spec.config == {"region": "us-west-2", "workers": {"count": 3}}
        assert out.spec.dry_run is True

    def test_input_not_mutated(self, make_deployment, make_cluster_template):
        tpl = make_cluster_template(config={"workers": {"count": 3}})
        d = _without_config(make_deployment)

        out = apply_defaults(d, tpl)
        out.spec.config["workers"]["count"] = 99

        assert d.spec.config is None
        assert d.spec.dry_run is False
        assert tpl.status.config == {"workers": {"count": 3}}

    def test_user_config_untouched(self, make_deployment, make_cluster_template):
        d = make_deployment(config={"region": "mine"})
        out = apply_defaults(d, make_cluster_template(config={"region": "theirs"}))
        assert out is d

    def test_template_without_config(self, make_deployment, make_cluster_template):
        d = _without_config(make_deployment)
        out = apply_defaults(d, make_cluster_template(config=None))
        assert out.spec.config is None
        assert out.spec.dry_run is False

    def test_invalid_template(self, make_deployment, make_cluster_template):
        tpl = make_cluster_template(valid=False, error="bad chart", config={"a": 1})
        with pytest.raises(DefaultingError) as exc:
            apply_defaults(_without_config(make_deployment), tpl)
        assert exc.value.result.reason == ErrorKind.INVALID
        assert "bad chart" in str(exc.value)
