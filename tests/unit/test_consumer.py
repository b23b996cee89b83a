from pathlib import Path
from threading import Event

import pytest

from lb_controller.controller import LoadBalancerController
from lb_controller.errors import BackendUnavailable
from lb_controller.jobs import JobWaiter
from lb_controller.models.base import JobStatus
from lb_controller.models.memory import MemoryModel
from routing_daemon.consumer import ReconciliationLoop
from routing_daemon.handler import RoutingEventHandler
from routing_daemon.subscriptions import SpoolSubscription


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


def build_loop(tmp_path: Path, model: MemoryModel = None):
    clock = FakeClock()
    model = model or MemoryModel()
    controller = LoadBalancerController(model, virtual_endpoint="vs-http")
    subscription = SpoolSubscription(
        tmp_path, retry_interval=5.0, sleep=clock.sleep, clock=clock
    )
    loop = ReconciliationLoop(subscription, RoutingEventHandler(controller), Event())
    return loop, controller, clock


def build_async_loop(tmp_path: Path, model: MemoryModel, job_timeout: float = 3.0):
    clock = FakeClock()
    waiter = JobWaiter(
        model, interval=1.0, timeout=job_timeout, sleep=clock.sleep, clock=clock
    )
    controller = LoadBalancerController(
        model, virtual_endpoint="vs-http", job_waiter=waiter
    )
    subscription = SpoolSubscription(
        tmp_path, retry_interval=5.0, sleep=clock.sleep, clock=clock
    )
    loop = ReconciliationLoop(subscription, RoutingEventHandler(controller), Event())
    return loop, controller, clock


def fail_once(model: MemoryModel, name: str, error: Exception) -> None:
    original = getattr(model, name)

    def failing(*args):
        setattr(model, name, original)
        raise error

    setattr(model, name, failing)


def spool(tmp_path: Path, name: str, body: str) -> Path:
    path = tmp_path / name
    path.write_text(body)
    return path


CREATE = "action: create-application\napp_name: blog\nnamespace: ns1\n"
ADD_GEAR = (
    "action: add-gear\napp_name: blog\nnamespace: ns1\n"
    "gear_address: 10.0.0.5\ngear_port: 8080\n"
)
DELETE = "action: delete-application\napp_name: blog\nnamespace: ns1\n"


def test_events_applied_in_spool_order(tmp_path: Path):
    loop, controller, _ = build_loop(tmp_path)
    spool(tmp_path, "0001.yaml", CREATE)
    spool(tmp_path, "0002.yaml", ADD_GEAR)

    assert loop.drain() == 2

    assert controller.pool("lb-blog-ns1").members == {"10.0.0.5:8080"}
    assert list(tmp_path.iterdir()) == []


def test_full_lifecycle_leaves_empty_backend(tmp_path: Path):
    model = MemoryModel()
    loop, _, _ = build_loop(tmp_path, model)
    spool(tmp_path, "0001.yaml", CREATE)
    spool(tmp_path, "0002.yaml", ADD_GEAR)
    spool(tmp_path, "0003.yaml", DELETE)

    assert loop.drain() == 3

    assert model.state.pools == {}
    assert model.state.routes == {}
    assert model.state.active_routes == {}


def test_failed_event_is_left_for_redelivery(tmp_path: Path):
    model = MemoryModel()
    loop, controller, clock = build_loop(tmp_path, model)
    first = spool(tmp_path, "0001.yaml", CREATE)
    spool(tmp_path, "0002.yaml", ADD_GEAR)
    model.available = False

    assert loop.drain() == 1
    assert first.exists()

    # still inside the retry delay
    model.available = True
    assert loop.drain() == 0

    clock.now += 5.0
    assert loop.drain() == 2
    assert controller.pool("lb-blog-ns1").members == {"10.0.0.5:8080"}
    assert list(tmp_path.iterdir()) == []


def test_logical_error_is_not_acknowledged(tmp_path: Path):
    loop, _, _ = build_loop(tmp_path)
    message = spool(tmp_path, "0001.yaml", ADD_GEAR)

    assert loop.poll() is False
    assert message.exists()


def test_malformed_and_unsupported_messages_are_dropped(tmp_path: Path):
    loop, controller, _ = build_loop(tmp_path)
    spool(tmp_path, "0001.yaml", "action: [broken")
    spool(tmp_path, "0002.yaml", ":action: :add_alias\n:app_name: blog\n:namespace: ns1\n")
    spool(tmp_path, "0003.yaml", CREATE)

    assert loop.drain() == 3

    assert controller.pools.names() == ["lb-blog-ns1"]
    assert list(tmp_path.iterdir()) == []


def test_poll_returns_none_when_idle(tmp_path: Path):
    loop, _, clock = build_loop(tmp_path)

    assert loop.poll() is None
    assert clock.now >= 1.0


def test_spool_ignores_hidden_files_and_missing_directory(tmp_path: Path):
    clock = FakeClock()
    missing = SpoolSubscription(tmp_path / "absent", sleep=clock.sleep, clock=clock)
    assert missing.receive(timeout=0) is None

    spool(tmp_path, ".0001.yaml.tmp", CREATE)
    subscription = SpoolSubscription(tmp_path, sleep=clock.sleep, clock=clock)
    assert subscription.receive(timeout=0) is None

    spool(tmp_path, "0002.yaml", CREATE)
    delivery = subscription.receive(timeout=0)
    assert delivery.id == "0002.yaml"
    assert delivery.body == CREATE


@pytest.mark.parametrize(
    "polls_to_complete, job_result",
    [(None, JobStatus.SUCCEEDED), (1, JobStatus.FAILED)],
    ids=["job-timeout", "job-failed"],
)
def test_redelivery_after_unconfirmed_job_converges(tmp_path: Path, polls_to_complete, job_result):
    model = MemoryModel(
        asynchronous=True, polls_to_complete=polls_to_complete, job_result=job_result
    )
    loop, controller, clock = build_async_loop(tmp_path, model)
    first = spool(tmp_path, "0001.yaml", CREATE)
    spool(tmp_path, "0002.yaml", ADD_GEAR)

    assert loop.drain() == 1
    assert first.exists()

    model.polls_to_complete = 1
    model.job_result = JobStatus.SUCCEEDED
    clock.now += 5.0
    assert loop.drain() == 2

    assert list(tmp_path.iterdir()) == []
    assert controller.pool("lb-blog-ns1").members == {"10.0.0.5:8080"}
    assert model.state.active_routes == {"route-blog-ns1": "vs-http"}
    names = [call[0] for call in model.mutating_calls()]
    assert names.count("create_pool") == 1
    assert names.count("create_route") == 1


def test_redelivery_after_member_timeout_converges(tmp_path: Path):
    model = MemoryModel(asynchronous=True)
    loop, controller, clock = build_async_loop(tmp_path, model)
    spool(tmp_path, "0001.yaml", CREATE)
    assert loop.drain() == 1

    spool(tmp_path, "0002.yaml", ADD_GEAR)
    model.polls_to_complete = None
    assert loop.drain() == 1

    model.polls_to_complete = 1
    clock.now += 5.0
    assert loop.drain() == 1

    assert list(tmp_path.iterdir()) == []
    assert controller.pool("lb-blog-ns1").members == {"10.0.0.5:8080"}
    names = [call[0] for call in model.mutating_calls()]
    assert names.count("add_pool_member") == 1


def test_redelivery_after_failed_attach_attaches_route(tmp_path: Path):
    model = MemoryModel()
    loop, controller, clock = build_loop(tmp_path, model)
    first = spool(tmp_path, "0001.yaml", CREATE)
    fail_once(model, "attach_route", BackendUnavailable("virtual server unreachable"))

    assert loop.drain() == 1
    assert first.exists()
    assert model.state.active_routes == {}

    clock.now += 5.0
    assert loop.drain() == 1

    assert list(tmp_path.iterdir()) == []
    assert model.state.active_routes == {"route-blog-ns1": "vs-http"}
    assert "route-blog-ns1" in controller.active_routes
    names = [call[0] for call in model.mutating_calls()]
    assert names.count("create_route") == 1
    assert names.count("attach_route") == 1
