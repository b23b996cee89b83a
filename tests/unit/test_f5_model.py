import json

import httpx
import pytest

from lb_controller.controller import LoadBalancerController
from lb_controller.errors import BackendRequestError, BackendUnavailable, InvalidReference
from lb_controller.models.f5 import F5Model

PREFIX = "/mgmt/tm/ltm/"


class FakeBigIP:
    """Tiny in-memory stand-in for the iControl REST API."""

    def __init__(self, password="secret"):
        self.password = password
        self.logins = 0
        self.tokens: set[str] = set()
        self.pools: dict[str, dict] = {}
        self.profiles: dict[str, dict] = {}
        self.virtual_profiles: dict[str, list[str]] = {"vs-http": ["http", "tcp"]}
        self.monitors: dict[str, dict[str, dict]] = {"http": {}, "https": {}}
        self.requests: list[tuple[str, str]] = []

    def expire_sessions(self):
        self.tokens.clear()

    @staticmethod
    def _items(names):
        return httpx.Response(
            200, json={"items": [{"name": n, "partition": "Common"} for n in names]}
        )

    @staticmethod
    def _name(ref):
        assert ref.startswith("~Common~"), ref
        return ref[len("~Common~"):]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else {}

        if path == "/mgmt/shared/authn/login":
            if body["password"] != self.password:
                return httpx.Response(401, json={"message": "Authentication failed"})
            self.logins += 1
            token = f"token-{self.logins}"
            self.tokens.add(token)
            return httpx.Response(200, json={"token": {"token": token}})

        if request.headers.get("X-F5-Auth-Token") not in self.tokens:
            return httpx.Response(401, json={"message": "X-F5-Auth-Token invalid"})

        self.requests.append((request.method, path))
        parts = path[len(PREFIX):].split("/")
        method = request.method

        if parts[0] == "pool":
            if len(parts) == 1:
                if method == "GET":
                    return self._items(self.pools)
                if body["name"] in self.pools:
                    return httpx.Response(409, json={"message": "already exists"})
                self.pools[body["name"]] = {"monitor": body.get("monitor"), "members": []}
                return httpx.Response(200, json=body)
            pool = self.pools.get(self._name(parts[1]))
            if pool is None:
                return httpx.Response(404, json={"message": "not found"})
            if len(parts) == 2:
                if method == "DELETE":
                    del self.pools[self._name(parts[1])]
                elif method == "PATCH":
                    pool["monitor"] = body["monitor"]
                return httpx.Response(200)
            if len(parts) == 3:
                if method == "GET":
                    return self._items(pool["members"])
                pool["members"].append(body["name"])
                return httpx.Response(200, json=body)
            pool["members"].remove(self._name(parts[3]))
            return httpx.Response(200)

        if parts[:2] == ["profile", "httpclass"]:
            if len(parts) == 2:
                if method == "GET":
                    return httpx.Response(200, json={"items": list(self.profiles.values())})
                self.profiles[body["name"]] = body
                return httpx.Response(200, json=body)
            del self.profiles[self._name(parts[2])]
            return httpx.Response(200)

        if parts[0] == "virtual":
            attached = self.virtual_profiles[self._name(parts[1])]
            if method == "GET":
                return self._items(attached)
            if method == "POST":
                attached.append(body["name"])
            else:
                attached.remove(self._name(parts[3]))
            return httpx.Response(200)

        if parts[0] == "monitor":
            monitors = self.monitors[parts[1]]
            if len(parts) == 2:
                if method == "GET":
                    return self._items(monitors)
                monitors[body["name"]] = body
                return httpx.Response(200, json=body)
            del monitors[self._name(parts[2])]
            return httpx.Response(200)

        return httpx.Response(404, json={"message": f"unknown path {path}"})


def build_model(fake: FakeBigIP, password="secret", virtual_server="vs-http") -> F5Model:
    return F5Model(
        "bigip.example.com",
        "admin",
        password,
        virtual_server=virtual_server,
        transport=httpx.MockTransport(fake),
    )


def test_pool_and_member_crud():
    fake = FakeBigIP()
    model = build_model(fake)
    model.authenticate()

    assert model.create_pool("lb-blog-ns1") == []
    assert model.add_pool_member("lb-blog-ns1", "10.0.0.5", 8080) == []
    assert model.list_pools() == ["lb-blog-ns1"]
    assert model.get_pool_members("lb-blog-ns1") == [("10.0.0.5", 8080)]

    model.delete_pool_member("lb-blog-ns1", "10.0.0.5", 8080)
    assert model.get_pool_members("lb-blog-ns1") == []
    assert ("DELETE", PREFIX + "pool/~Common~lb-blog-ns1/members/~Common~10.0.0.5:8080") in fake.requests

    model.delete_pool("lb-blog-ns1")
    assert fake.pools == {}


def test_routes_are_httpclass_profiles_on_the_virtual_server():
    fake = FakeBigIP()
    model = build_model(fake)
    model.create_pool("lb-blog-ns1")

    model.create_route("lb-blog-ns1", "route-blog-ns1", "/blog")
    model.attach_route("route-blog-ns1", "vs-http")

    assert fake.profiles["route-blog-ns1"]["pool"] == "/Common/lb-blog-ns1"
    assert fake.profiles["route-blog-ns1"]["paths"] == ["glob:/blog*"]
    assert model.list_routes() == ["route-blog-ns1"]
    # Protocol profiles on the virtual server are not routes.
    assert model.list_active_routes() == ["route-blog-ns1"]

    model.detach_route("route-blog-ns1", "vs-http")
    model.delete_route("lb-blog-ns1", "route-blog-ns1")
    assert model.list_routes() == []
    assert fake.virtual_profiles["vs-http"] == ["http", "tcp"]


def test_route_listing_reports_selected_pool():
    fake = FakeBigIP()
    model = build_model(fake)
    model.create_pool("lb-blog-ns1")
    model.create_route("lb-blog-ns1", "route-blog-ns1", "/blog")
    fake.profiles["legacy"] = {"name": "legacy", "partition": "Common"}

    assert model.list_route_pools() == {"route-blog-ns1": "lb-blog-ns1", "legacy": None}


def test_restarted_controller_guards_pool_with_listed_route():
    fake = FakeBigIP()
    model = build_model(fake)
    model.create_pool("lb-blog-ns1")
    model.create_route("lb-blog-ns1", "route-blog-ns1", "/blog")
    controller = LoadBalancerController(build_model(fake), virtual_endpoint="vs-http")

    with pytest.raises(InvalidReference):
        controller.delete_pool("lb-blog-ns1")

    assert "lb-blog-ns1" in fake.pools


def test_active_routes_empty_without_virtual_server():
    model = build_model(FakeBigIP(), virtual_server=None)

    assert model.list_active_routes() == []


def test_monitor_crud():
    fake = FakeBigIP()
    model = build_model(fake)

    model.create_monitor("monitor-blog", "/health", "200", "https", 5, 16)
    model.create_pool("lb-blog-ns1", monitor="monitor-blog")

    assert fake.monitors["https"]["monitor-blog"]["send"] == "GET /health HTTP/1.0\\r\\n\\r\\n"
    assert fake.pools["lb-blog-ns1"]["monitor"] == "/Common/monitor-blog"
    assert model.list_monitors() == ["monitor-blog"]

    model.dissociate_monitor("monitor-blog", "lb-blog-ns1")
    assert fake.pools["lb-blog-ns1"]["monitor"] == "none"

    model.delete_monitor("monitor-blog")
    assert fake.monitors["https"] == {}


def test_unsupported_monitor_type():
    model = build_model(FakeBigIP())

    with pytest.raises(ValueError):
        model.create_monitor("m", "/", "200", "tcp", 5, 16)


def test_expired_session_is_refreshed_once():
    fake = FakeBigIP()
    model = build_model(fake)
    model.create_pool("lb-blog-ns1")
    assert fake.logins == 1

    fake.expire_sessions()
    assert model.list_pools() == ["lb-blog-ns1"]

    assert fake.logins == 2
    assert fake.requests.count(("GET", PREFIX + "pool")) == 1


def test_rejected_credentials_raise_backend_unavailable():
    model = build_model(FakeBigIP(), password="wrong")

    with pytest.raises(BackendUnavailable):
        model.authenticate()


def test_connection_failure_raises_backend_unavailable():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    model = F5Model("bigip", "admin", "secret", transport=httpx.MockTransport(refuse))

    with pytest.raises(BackendUnavailable):
        model.list_pools()


def test_conflict_raises_request_error():
    fake = FakeBigIP()
    model = build_model(fake)
    model.create_pool("lb-blog-ns1")

    with pytest.raises(BackendRequestError) as excinfo:
        model.create_pool("lb-blog-ns1")

    assert excinfo.value.status_code == 409


def test_controller_end_to_end_against_appliance():
    fake = FakeBigIP()
    model = build_model(fake)
    controller = LoadBalancerController(model, virtual_endpoint="vs-http")
    controller.connect()

    controller.create_pool("lb-blog-ns1")
    controller.create_route("lb-blog-ns1", "route-blog-ns1", "/blog")
    controller.pool("lb-blog-ns1").add_member("10.0.0.5", 8080)

    assert fake.pools["lb-blog-ns1"]["members"] == ["10.0.0.5:8080"]
    assert "route-blog-ns1" in fake.virtual_profiles["vs-http"]

    controller.delete_route("lb-blog-ns1", "route-blog-ns1")
    controller.delete_pool("lb-blog-ns1")
    assert fake.pools == {}
    assert fake.profiles == {}
