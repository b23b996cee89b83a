import pytest

from lb_controller.controller import LoadBalancerController
from lb_controller.errors import JobFailed, JobTimeout
from lb_controller.jobs import JobWaiter
from lb_controller.models.base import JobStatus
from lb_controller.models.memory import MemoryModel


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def build_async_controller(polls_to_complete=1, job_result=JobStatus.SUCCEEDED, timeout=10.0):
    model = MemoryModel(
        asynchronous=True,
        polls_to_complete=polls_to_complete,
        job_result=job_result,
    )
    clock = FakeClock()
    waiter = JobWaiter(model, interval=1.0, timeout=timeout, sleep=clock.sleep, clock=clock)
    return LoadBalancerController(model, job_waiter=waiter), model, clock


def test_waiter_returns_immediately_without_jobs():
    clock = FakeClock()
    waiter = JobWaiter(MemoryModel(), sleep=clock.sleep, clock=clock)

    waiter.wait([])

    assert clock.sleeps == []


def test_async_mutation_waits_for_jobs():
    controller, model, clock = build_async_controller(polls_to_complete=3)

    controller.create_pool("lb-app-ns")

    assert "lb-app-ns" in controller.pools
    assert clock.sleeps == [1.0, 1.0]
    assert [call[0] for call in model.calls].count("get_job_status") == 3


def test_pending_job_timeout_discards_cached_pools():
    controller, model, clock = build_async_controller(polls_to_complete=None, timeout=5.0)
    assert controller.pools.names() == []

    with pytest.raises(JobTimeout) as excinfo:
        controller.create_pool("lb-app-ns")

    assert excinfo.value.retryable
    assert clock.now >= 5.0
    assert not controller.pools.loaded
    # The backend applied it after all; the next access re-lists.
    assert "lb-app-ns" in controller.pools
    assert [call[0] for call in model.calls].count("list_pools") == 2


def test_pending_member_job_timeout_reloads_members():
    controller, model, _ = build_async_controller()
    pool = controller.create_pool("lb-app-ns")
    assert pool.members == frozenset()
    model.polls_to_complete = None

    with pytest.raises(JobTimeout):
        pool.add_member("10.0.0.5", 8080)

    assert pool.members == {"10.0.0.5:8080"}
    assert [call[0] for call in model.calls].count("get_pool_members") == 1


def test_failed_job_aborts_operation():
    controller, model, _ = build_async_controller(job_result=JobStatus.FAILED)

    with pytest.raises(JobFailed) as excinfo:
        controller.create_monitor("monitor-app", "/", "200", "http", 5, 16)

    assert excinfo.value.job_id == "job-1"
    assert not controller.monitors.loaded
    assert controller.monitors.names() == list(model.state.monitors)
