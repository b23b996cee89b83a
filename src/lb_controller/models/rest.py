"""Session handling shared by the REST-speaking backend models."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

import httpx

from ..errors import BackendRequestError, BackendUnavailable
from .base import LoadBalancerModel

LOG = logging.getLogger(__name__)


class RestModel(LoadBalancerModel):
    """Base class holding one authenticated :class:`httpx.Client` session.

    Subclasses implement :meth:`_login` (returning a session token) and
    :meth:`_base_url`.  A request rejected with HTTP 401 triggers exactly one
    re-authentication followed by a resend of the same request; the rejected
    request was never applied, so resending it cannot double-apply anything.
    """

    auth_header = "X-Auth-Token"

    def __init__(
        self,
        host: str,
        user: str,
        secret: str,
        *,
        verify: bool = True,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        super().__init__(host, user, secret)
        self._token: Optional[str] = None
        self._client = httpx.Client(
            base_url=self._base_url(host),
            verify=verify,
            timeout=timeout,
            transport=transport,
        )

    def _base_url(self, host: str) -> str:
        raise NotImplementedError

    def _login(self, host: str, user: str, secret: str) -> str:
        raise NotImplementedError

    def authenticate(
        self,
        host: Optional[str] = None,
        user: Optional[str] = None,
        secret: Optional[str] = None,
    ) -> None:
        self._host = host or self._host
        self._user = user or self._user
        self._secret = secret or self._secret
        self._client.base_url = self._base_url(self._host)
        self._token = None
        LOG.info("Authenticating to %s as %s", self._host, self._user)
        self._token = self._login(self._host, self._user, self._secret)

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------
    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise BackendUnavailable(
                f"{method} {url} failed against {self._host}: {exc}"
            ) from exc

    def _post_credentials(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self._send("POST", url, json=payload)
        if response.status_code in (401, 403):
            raise BackendUnavailable(
                f"authentication to {self._host} rejected ({response.status_code})"
            )
        self._raise_for_status(response)
        return response.json()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if self._token is None:
            self.authenticate()

        response = self._send(method, path, headers=self._auth_headers(), **kwargs)
        if response.status_code == 401:
            LOG.info("Session to %s expired, re-authenticating", self._host)
            self.authenticate()
            response = self._send(method, path, headers=self._auth_headers(), **kwargs)
            if response.status_code == 401:
                raise BackendUnavailable(
                    f"{method} {path} still unauthorized after re-authentication"
                )

        self._raise_for_status(response)
        return response

    def _auth_headers(self) -> Dict[str, str]:
        return {self.auth_header: self._token or ""}

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        request = response.request
        raise BackendRequestError(
            f"{request.method} {request.url.path} returned "
            f"{response.status_code}: {response.text.strip()}",
            status_code=response.status_code,
        )

    @staticmethod
    def _names(items: Iterable[Dict[str, Any]]) -> list[str]:
        return [item["name"] for item in items]
