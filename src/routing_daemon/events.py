"""Routing-update events published by the orchestrator's routing plugin.

The plugin owns the wire encoding.  Messages are YAML mappings (JSON payloads
parse the same way) whose keys may be written Ruby-symbol style
(``:app_name``); only the fields below need to be extractable.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Union

import yaml


class RoutingAction(Enum):
    ADD_GEAR = "add-gear"
    REMOVE_GEAR = "remove-gear"
    CREATE_APPLICATION = "create-application"
    DELETE_APPLICATION = "delete-application"


ACTION_ALIASES = {
    "add-public-endpoint": RoutingAction.ADD_GEAR,
    "remove-public-endpoint": RoutingAction.REMOVE_GEAR,
}

ADDRESS_KEYS = ("public_address", "gear_address", "address")
PORT_KEYS = ("public_port", "gear_port", "port")

# Endpoint type of the application's own proxy gear.
LOCAL_PROXY_TYPE = "load_balancer"


class MalformedEvent(ValueError):
    """The message cannot be turned into a routing event."""


class UnsupportedAction(ValueError):
    """The message carries an action this daemon does not reconcile."""

    def __init__(self, action: str) -> None:
        super().__init__(f"unsupported routing action '{action}'")
        self.action = action


@dataclass(frozen=True)
class RoutingEvent:
    action: RoutingAction
    app_name: str
    namespace: str
    address: Optional[str] = None
    port: Optional[int] = None
    types: Sequence[str] = ()

    @property
    def targets_local_proxy(self) -> bool:
        return LOCAL_PROXY_TYPE in self.types

    def describe(self) -> str:
        target = f" {self.address}:{self.port}" if self.address else ""
        return f"{self.action.value} {self.app_name}/{self.namespace}{target}"


def _normalise_action(value: Any) -> str:
    return str(value).strip().lstrip(":").lower().replace("_", "-")


def _first(data: Mapping[str, Any], keys: Sequence[str]) -> Any:
    return next((data[key] for key in keys if data.get(key) not in (None, "")), None)


def parse_action(value: Any) -> RoutingAction:
    name = _normalise_action(value)
    if name in ACTION_ALIASES:
        return ACTION_ALIASES[name]
    try:
        return RoutingAction(name)
    except ValueError:
        raise UnsupportedAction(name) from None


def decode_event(payload: Union[str, bytes, Mapping[str, Any]]) -> RoutingEvent:
    if isinstance(payload, (str, bytes)):
        try:
            payload = yaml.safe_load(payload)
        except yaml.YAMLError as exc:
            raise MalformedEvent(f"unparseable routing event: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise MalformedEvent("routing event must be a mapping")

    data = {str(key).lstrip(":"): value for key, value in payload.items()}
    if data.get("action") is None:
        raise MalformedEvent("routing event missing 'action'")
    action = parse_action(data["action"])

    app_name = data.get("app_name")
    namespace = data.get("namespace")
    if not app_name or not namespace:
        raise MalformedEvent("routing event requires 'app_name' and 'namespace'")

    address: Optional[str] = None
    port: Optional[int] = None
    if action in (RoutingAction.ADD_GEAR, RoutingAction.REMOVE_GEAR):
        raw_address = _first(data, ADDRESS_KEYS)
        raw_port = _first(data, PORT_KEYS)
        if raw_address is None or raw_port is None:
            raise MalformedEvent(f"{action.value} event requires gear address and port")
        address = str(raw_address)
        try:
            port = int(raw_port)
        except (TypeError, ValueError):
            raise MalformedEvent(f"invalid gear port '{raw_port}'") from None

    types = data.get("types") or ()
    if isinstance(types, str):
        types = (types,)

    return RoutingEvent(
        action=action,
        app_name=str(app_name),
        namespace=str(namespace),
        address=address,
        port=port,
        types=tuple(str(t) for t in types),
    )
