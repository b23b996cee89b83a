"""Cloud LBaaS model speaking the tenant-scoped REST API.

Mutations are not applied synchronously: the service answers ``202`` with a
list of job identifiers which have to be polled through ``jobs/<id>`` until
they complete.  Sessions are keystone v2 tokens.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import httpx

from ..errors import BackendRequestError
from ..naming import member_key
from .base import JobIds, JobStatus
from .rest import RestModel

LOG = logging.getLogger(__name__)

JOB_STATES: Dict[str, JobStatus] = {
    "QUEUED": JobStatus.PENDING,
    "PENDING": JobStatus.PENDING,
    "RUNNING": JobStatus.PENDING,
    "COMPLETED": JobStatus.SUCCEEDED,
    "FAILED": JobStatus.FAILED,
    "ERROR": JobStatus.FAILED,
}


class LBaaSModel(RestModel):
    asynchronous = True

    def __init__(
        self,
        host: str,
        user: str,
        secret: str,
        *,
        keystone_host: str,
        tenant: str,
        virtual_endpoint: Optional[str] = None,
        verify: bool = True,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._keystone_host = keystone_host
        self._tenant = tenant
        self._virtual_endpoint = virtual_endpoint
        super().__init__(
            host, user, secret, verify=verify, timeout=timeout, transport=transport
        )

    def _base_url(self, host: str) -> str:
        return f"https://{host}/loadbalancers/tenant/{self._tenant}/"

    def _login(self, host: str, user: str, secret: str) -> str:
        body = self._post_credentials(
            f"https://{self._keystone_host}/v2.0/tokens",
            {
                "auth": {
                    "passwordCredentials": {"username": user, "password": secret},
                    "tenantName": self._tenant,
                }
            },
        )
        return body["access"]["token"]["id"]

    def _submit(self, method: str, path: str, **kwargs) -> JobIds:
        response = self._request(method, path, **kwargs)
        if not response.content:
            return []
        jobs = [str(job) for job in response.json().get("jobs", [])]
        LOG.debug("%s %s submitted jobs %s", method, path, jobs)
        return jobs

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------
    def list_pools(self) -> List[str]:
        return self._names(self._request("GET", "pools").json().get("pools", []))

    def list_routes(self) -> List[str]:
        return self._names(self._request("GET", "policies").json().get("policies", []))

    def list_route_pools(self) -> Dict[str, Optional[str]]:
        policies = self._request("GET", "policies").json().get("policies", [])
        return {policy["name"]: policy.get("pool") or None for policy in policies}

    def list_active_routes(self) -> List[str]:
        if not self._virtual_endpoint:
            return []
        body = self._request("GET", f"vips/{self._virtual_endpoint}/policies").json()
        return self._names(body.get("policies", []))

    def list_monitors(self) -> List[str]:
        return self._names(self._request("GET", "monitors").json().get("monitors", []))

    def get_pool_members(self, pool: str) -> List[Tuple[str, int]]:
        members = self._request("GET", f"pools/{pool}/members").json().get("members", [])
        return [(member["address"], int(member["port"])) for member in members]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create_pool(self, pool: str, monitor: Optional[str] = None) -> JobIds:
        body = {"name": pool, "monitors": [monitor] if monitor else []}
        return self._submit("POST", "pools", json={"pool": body})

    def delete_pool(self, pool: str) -> JobIds:
        return self._submit("DELETE", f"pools/{pool}")

    def add_pool_member(self, pool: str, address: str, port: int) -> JobIds:
        return self._submit(
            "POST",
            f"pools/{pool}/members",
            json={"member": {"address": address, "port": int(port)}},
        )

    def delete_pool_member(self, pool: str, address: str, port: int) -> JobIds:
        return self._submit("DELETE", f"pools/{pool}/members/{member_key(address, port)}")

    def create_route(self, pool: str, route: str, path: str) -> JobIds:
        return self._submit(
            "POST",
            "policies",
            json={"policy": {"name": route, "pool": pool, "path": path}},
        )

    def delete_route(self, pool: str, route: str) -> JobIds:
        return self._submit("DELETE", f"policies/{route}")

    def attach_route(self, route: str, endpoint: str) -> JobIds:
        return self._submit(
            "POST", f"vips/{endpoint}/policies", json={"policy": {"name": route}}
        )

    def detach_route(self, route: str, endpoint: str) -> JobIds:
        return self._submit("DELETE", f"vips/{endpoint}/policies/{route}")

    def create_monitor(
        self,
        monitor: str,
        path: str,
        up_code: str,
        type: str,
        interval: int,
        timeout: int,
    ) -> JobIds:
        return self._submit(
            "POST",
            "monitors",
            json={
                "monitor": {
                    "name": monitor,
                    "path": path,
                    "up_code": str(up_code),
                    "type": type,
                    "interval": int(interval),
                    "timeout": int(timeout),
                }
            },
        )

    def dissociate_monitor(self, monitor: str, pool: str) -> JobIds:
        return self._submit("DELETE", f"pools/{pool}/monitors/{monitor}")

    def delete_monitor(self, monitor: str) -> JobIds:
        return self._submit("DELETE", f"monitors/{monitor}")

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------
    def get_job_status(self, job_id: str) -> JobStatus:
        job = self._request("GET", f"jobs/{job_id}").json().get("job", {})
        state = str(job.get("status", "")).upper()
        try:
            return JOB_STATES[state]
        except KeyError:
            raise BackendRequestError(
                f"job {job_id} reported unknown status '{state}'"
            ) from None
