"""Event sources the rule engine can select from, and the fields each one exposes."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional


class EventType(enum.IntEnum):
    DEVICE = 0
    TOPIC = 1
    MESSAGE = 2
    SUBSCRIPTION = 3


class ValueType(enum.IntEnum):
    STR = 0
    INT = 1
    BOOL = 2
    JSON = 3
    NULL = 4


@dataclass(frozen=True)
class FieldMeta:
    """A named field of an event, read from an attribute of the event data."""

    field_name: str
    value_type: ValueType
    attribute: str = ""

    def __post_init__(self) -> None:
        if not self.attribute:
            object.__setattr__(self, "attribute", self.field_name)

    def read(self, event_data: Any) -> Any:
        """The raw value of this field in ``event_data``."""
        return getattr(event_data, self.attribute)


@dataclass
class EventSourceInfo:
    """An event source and the fields a rule may refer to."""

    source: EventType
    name: str
    fields_meta: dict = field(default_factory=dict)


class DeviceAction(enum.IntEnum):
    ONLINE = 0
    OFFLINE = 1


class TopicAction(enum.IntEnum):
    ADD = 0
    REMOVE = 1


class SubscriptionAction(enum.IntEnum):
    SUB = 0
    UNSUB = 1


@dataclass
class DeviceEvent:
    action: DeviceAction
    client_id: Optional[str] = None
    username: Optional[str] = None


@dataclass
class TopicEvent:
    action: TopicAction
    topic: Optional[str] = None


@dataclass
class SubscriptionEvent:
    action: SubscriptionAction
    client_id: Optional[str] = None
    username: Optional[str] = None
    topic: Optional[str] = None
    sub_qos: int = 0


@dataclass
class PublishEvent:
    client_id: Optional[str] = None
    username: Optional[str] = None
    qos: int = 0
    retain: int = 0
    payload_as_json: Optional[dict] = None


def register_event_source(registry: dict, source: EventType, name: str, *args: FieldMeta) -> EventSourceInfo:
    """Add the fields ``args`` to the source ``name``, creating the source if needed."""
    info = registry.get(name)
    if info is None:
        info = EventSourceInfo(source, name)
        registry[name] = info
    for meta in args:
        info.fields_meta[meta.field_name] = meta
    return info


def default_event_sources() -> dict:
    """A fresh registry holding the broker's built-in event sources."""
    registry: dict = {}
    register_event_source(
        registry, EventType.DEVICE, "device",
        FieldMeta("action", ValueType.INT),
        FieldMeta("client_id", ValueType.STR),
        FieldMeta("username", ValueType.STR),
    )
    register_event_source(
        registry, EventType.DEVICE, "topic",
        FieldMeta("action", ValueType.INT),
        FieldMeta("topic", ValueType.STR),
    )
    register_event_source(
        registry, EventType.SUBSCRIPTION, "subscription",
        FieldMeta("action", ValueType.INT),
        FieldMeta("client_id", ValueType.STR),
        FieldMeta("username", ValueType.STR),
        FieldMeta("topic", ValueType.STR),
        FieldMeta("sub_qos", ValueType.INT),
    )
    register_event_source(
        registry, EventType.MESSAGE, "message",
        FieldMeta("client_id", ValueType.STR),
        FieldMeta("username", ValueType.STR),
        FieldMeta("qos", ValueType.INT),
        FieldMeta("retain", ValueType.INT),
        FieldMeta("payload", ValueType.JSON, "payload_as_json"),
    )
    return registry