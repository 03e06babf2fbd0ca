"""Rule engine: turns parsed rules into listeners and feeds events to them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from tinymqtt.adaptors import Adaptor, AdaptorValue, AdaptorValueType
from tinymqtt.event_source import EventType, ValueType
from tinymqtt.events import Expr, ExprValue
from tinymqtt.rule_parser import RuleParser

_ADAPTOR_TYPES = {
    ValueType.STR: AdaptorValueType.STR,
    ValueType.INT: AdaptorValueType.INTEGER,
    ValueType.BOOL: AdaptorValueType.BOOL,
}


def _to_adaptor_value(value: ExprValue) -> AdaptorValue:
    return AdaptorValue(_ADAPTOR_TYPES.get(value.value_type), value.value)


@dataclass(frozen=True)
class Event:
    """An event of a given source type carrying its event data."""

    type: EventType
    data: Any


@dataclass
class EventListener:
    """A parsed rule bound to the adaptor that receives its output."""

    adaptor: Adaptor
    mappings: list = field(default_factory=list)
    filter: Optional[Expr] = None
    need_json_payload: bool = False

    def publish(self, event_data: Any) -> None:
        """Evaluate the rule on ``event_data`` and hand the selected values to the adaptor."""
        if self.filter is not None and not self.filter.evaluate(event_data).boolean:
            return
        parameters: dict = {}
        payload: list = []
        for mapping in self.mappings:
            value = _to_adaptor_value(mapping.value_expr.evaluate(event_data))
            if mapping.map_to_parameter:
                parameters[mapping.mapping_name] = value
            else:
                payload.append((mapping.mapping_name, value))
        self.adaptor.handle_event(parameters, payload)


class RuleEngine:
    """Holds listeners per event source and per message topic filter."""

    def __init__(self, plugins: Optional[dict] = None) -> None:
        self.parser = RuleParser(plugins)
        self._listeners: dict = {}
        self._topic_listeners: dict = {}

    def add_rule(self, rule: str) -> EventListener:
        """Parse ``rule`` and register its listener; raises RuleParseError if invalid."""
        result = self.parser.parse(rule)
        listener = EventListener(
            adaptor=result.adaptor,
            mappings=list(result.mappings),
            filter=result.filter,
            need_json_payload=result.need_json_payload,
        )
        if result.event_source is EventType.MESSAGE:
            self._topic_listeners.setdefault(result.source_topic, []).append(listener)
        else:
            # The newest listener is notified first.
            self._listeners.setdefault(result.event_source, []).insert(0, listener)
        return listener

    def publish_event(self, event: Event) -> None:
        """Deliver a non-message event to every listener of its source."""
        if event.type is EventType.MESSAGE:
            return
        for listener in self._listeners.get(event.type, ()):
            listener.publish(event.data)

    def topic_listeners(self, topic: str) -> list:
        """Listeners registered for messages on the topic filter ``topic``."""
        return list(self._topic_listeners.get(topic, ()))