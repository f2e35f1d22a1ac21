"""
Tests for the template upgrade path rule.
"""

from clusterplane.core.models import ErrorKind
from clusterplane.core.services.upgrade_path import FORBIDDEN_MESSAGE, check_upgrade_path


class TestCheckUpgradePath:
    def test_unchanged_template(self, make_deployment):
        old = make_deployment()
        new = make_deployment(config={"region": "eu-west-1"})
        assert check_upgrade_path(old, new).ok

    def test_allowed_upgrade(self, make_deployment):
        old = make_deployment(template="tpl-1", available_upgrades=("tpl-2",))
        new = make_deployment(template="tpl-2")
        assert check_upgrade_path(old, new).ok

    def test_forbidden_upgrade(self, make_deployment):
        old = make_deployment(template="tpl-1", available_upgrades=("tpl-2",))
        new = make_deployment(template="tpl-3")
        result = check_upgrade_path(old, new)
        assert result.reason == ErrorKind.POLICY_VIOLATION
        assert result.message == FORBIDDEN_MESSAGE
        assert result.warnings == [
            "Cluster can't be upgraded from tpl-1 to tpl-3. This upgrade sequence is not allowed"
        ]

    def test_empty_allow_list_forbids_every_change(self, make_deployment):
        assert check_upgrade_path(make_deployment(template="a"), make_deployment(template="b")).failed

    def test_enforcement_disabled(self, make_deployment):
        old = make_deployment(template="tpl-1")
        new = make_deployment(template="tpl-9")
        assert check_upgrade_path(old, new, enforce=False).ok

    def test_allow_list_of_new_object_is_ignored(self, make_deployment):
        old = make_deployment(template="tpl-1")
        new = make_deployment(template="tpl-2", available_upgrades=("tpl-2",))
        assert check_upgrade_path(old, new).failed
