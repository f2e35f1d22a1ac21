"""
Tests for the controller loop — store subscription, scheduling, handler errors.
"""

import threading

from clusterplane.adapters.mock import MockProvisioner
from clusterplane.adapters.renderer import HelmReleaseRenderer
from clusterplane.core.engine.controller import Controller, ControllerReport
from clusterplane.core.models import LifecyclePhase, ObjectKey, ReconcileOutcome
from clusterplane.core.models.settings import ReconcileSettings
from clusterplane.core.reliability.requeue import RequeueQueue
from clusterplane.core.services.lifecycle import LifecycleReconciler

KEY = ObjectKey("ClusterDeployment", "default", "prod-1")


def _controller(store, provisioner=None, workers=1):
    reconciler = LifecycleReconciler(
        store,
        HelmReleaseRenderer(),
        provisioner or MockProvisioner(),
        settings=ReconcileSettings(requeue_after=30.0),
    )
    return Controller(store, reconciler, RequeueQueue(base_delay=5.0, max_delay=60.0), workers=workers)


class TestSubscription:
    def test_created_deployment_is_queued(self, store, make_deployment):
        controller = _controller(store)
        store.create(make_deployment())
        assert controller.queue.size == 1

    def test_other_kinds_ignored(self, store, make_cluster_template):
        controller = _controller(store)
        store.create(make_cluster_template("another"))
        assert controller.queue.size == 0

    def test_close_stops_watching(self, store, make_deployment):
        controller = _controller(store)
        controller.close()
        store.create(make_deployment())
        assert controller.queue.size == 0

    def test_enqueue_all(self, store, make_deployment):
        store.create(make_deployment("a"))
        store.create(make_deployment("b"))
        controller = _controller(store)
        assert controller.enqueue_all() == 2


class TestRunUntilIdle:
    def test_drives_deployment_to_ready(self, store, make_deployment):
        controller = _controller(store)
        store.create(make_deployment())

        report = controller.run_until_idle()

        assert report.last(KEY).action == "done"
        assert store.get(*KEY).status.phase == LifecyclePhase.READY

    def test_parallel_workers(self, store, make_deployment):
        controller = _controller(store, workers=4)
        for name in ("a", "b", "c"):
            store.create(make_deployment(name))

        controller.run_until_idle()

        for name in ("a", "b", "c"):
            assert store.get("ClusterDeployment", "default", name).status.phase == LifecyclePhase.READY

    def test_waiting_key_stays_queued(self, store, make_deployment):
        controller = _controller(store, MockProvisioner(healthy=False))
        store.create(make_deployment())

        report = controller.run_until_idle()

        assert report.last(KEY).action == "requeue_after"
        assert controller.queue.size == 1
        assert 0 < controller.queue.next_due_in() <= 30.0

    def test_cancel_stops_the_loop(self, store, make_deployment):
        controller = _controller(store)
        store.create(make_deployment())
        cancel = threading.Event()
        cancel.set()

        report = controller.run_until_idle(cancel=cancel)

        assert report.total == 0
        assert controller.queue.size == 1


class TestHandlerErrors:
    def test_exception_is_rate_limited(self, store, make_deployment):
        class _Exploding(MockProvisioner):
            def apply(self, target, manifests):
                raise RuntimeError("boom")

        controller = _controller(store, _Exploding())
        store.create(make_deployment())

        report = controller.run_until_idle()

        last = report.last(KEY)
        assert last.action == "requeue"
        assert "boom" in last.message
        status = controller.queue.get_status()
        assert status["total"] == 1
        assert status["items"][0]["attempt"] == 1
        assert status["items"][0]["last_error"] == "handler error: boom"


class TestControllerReport:
    def test_counts_and_dict(self):
        report = ControllerReport()
        report.outcomes.append((KEY, ReconcileOutcome.requeue_immediately("finalizer attached")))
        report.outcomes.append((KEY, ReconcileOutcome.fatal("no chart")))

        assert report.total == 2
        assert report.fatal == 1
        assert report.last(KEY).message == "no chart"
        d = report.to_dict()
        assert d["passes"][0]["key"] == "ClusterDeployment/default/prod-1"
        assert d["passes"][1]["action"] == "fatal"

    def test_last_of_unknown_key(self):
        assert ControllerReport().last(KEY) is None
