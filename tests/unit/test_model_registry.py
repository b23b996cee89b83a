import httpx
import pytest

from lb_controller.config import BackendConfig, F5Settings, LBaaSSettings, MemorySettings
from lb_controller.models import F5Model, LBaaSModel, MemoryModel, ModelRegistry, build_model


def test_build_memory_model():
    model = build_model(
        BackendConfig(type="memory", memory=MemorySettings(asynchronous=True, polls_to_complete=3))
    )

    assert isinstance(model, MemoryModel)
    assert model.asynchronous is True
    assert model.polls_to_complete == 3


def test_build_http_models_share_transport():
    transport = httpx.MockTransport(lambda request: httpx.Response(404))

    f5 = build_model(
        BackendConfig(type="f5", virtual_endpoint="vs", f5=F5Settings(host="10.0.0.10")),
        transport,
    )
    lbaas = build_model(
        BackendConfig(
            type="lbaas",
            lbaas=LBaaSSettings(
                host="lbaas.example.com",
                keystone_host="keystone.example.com",
                username="openshift",
                password="secret",
                tenant="broker",
            ),
        ),
        transport,
    )

    assert isinstance(f5, F5Model)
    assert not f5.asynchronous
    assert isinstance(lbaas, LBaaSModel)
    assert lbaas.asynchronous
    f5.close()
    lbaas.close()


def test_registry_rejects_duplicate_registration():
    registry = ModelRegistry()
    factory = lambda config, transport: MemoryModel()  # noqa: E731

    registry.register("memory", factory)

    with pytest.raises(ValueError):
        registry.register("memory", factory)

    registry.unregister("memory")
    registry.register("memory", factory)
    assert registry.names() == ["memory"]


def test_registry_rejects_unknown_backend():
    with pytest.raises(ValueError):
        ModelRegistry().build(BackendConfig(type="memory"))
