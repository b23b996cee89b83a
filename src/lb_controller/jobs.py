"""Polling of asynchronous backend jobs."""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable

from .errors import JobFailed, JobTimeout
from .models.base import JobStatus, LoadBalancerModel

LOG = logging.getLogger(__name__)


class JobWaiter:
    """Block until every job of a mutation succeeded.

    Jobs are polled every ``interval`` seconds.  A job that succeeds leaves
    the wait set; a failed job raises :class:`JobFailed` immediately and jobs
    still pending once ``timeout`` seconds have elapsed raise
    :class:`JobTimeout`.  Nothing is rolled back in either case.
    """

    def __init__(
        self,
        model: LoadBalancerModel,
        *,
        interval: float = 1.0,
        timeout: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._model = model
        self._interval = interval
        self._timeout = timeout
        self._sleep = sleep
        self._clock = clock

    def wait(self, job_ids: Iterable[str]) -> None:
        pending = list(dict.fromkeys(job_ids))
        if not pending:
            return

        deadline = self._clock() + self._timeout
        LOG.debug("Waiting for backend jobs %s", pending)
        while True:
            for job_id in list(pending):
                status = self._model.get_job_status(job_id)
                if status is JobStatus.SUCCEEDED:
                    pending.remove(job_id)
                elif status is JobStatus.FAILED:
                    raise JobFailed(job_id)
            if not pending:
                return
            if self._clock() >= deadline:
                raise JobTimeout(pending, self._timeout)
            self._sleep(self._interval)
