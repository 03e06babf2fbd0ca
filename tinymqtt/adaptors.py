"""Adaptors that receive the values a rule selects from an event."""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass, field
from typing import Any


class AdaptorValueType(enum.IntEnum):
    STR = 0
    INTEGER = 1
    BOOL = 2


@dataclass(frozen=True)
class AdaptorValue:
    value_type: AdaptorValueType
    value: Any = None


class Adaptor(abc.ABC):
    """A sink for rule output: declares its parameters and handles events."""

    @abc.abstractmethod
    def register_parameters(self, parameters: dict) -> None:
        """Add this adaptor's parameter names and types to ``parameters``."""

    @abc.abstractmethod
    def handle_event(self, parameters: dict, payload: list) -> None:
        """Handle one event: named parameter values and (name, value) payload pairs."""


class MysqlAdaptor(Adaptor):
    """Collects selected values as rows for a table named by the ``table`` parameter."""

    def __init__(self) -> None:
        self.rows: list = []

    def register_parameters(self, parameters: dict) -> None:
        parameters["table"] = AdaptorValueType.STR

    def handle_event(self, parameters: dict, payload: list) -> None:
        table = parameters.get("table")
        row = {name: value.value for name, value in payload}
        self.rows.append((table.value if table is not None else None, row))


@dataclass
class PluginHandle:
    """A loaded adaptor together with the parameters it accepts."""

    adaptor: Adaptor
    adaptor_parameters: dict = field(default_factory=dict)

    @classmethod
    def from_adaptor(cls, adaptor: Adaptor) -> "PluginHandle":
        parameters: dict = {}
        adaptor.register_parameters(parameters)
        return cls(adaptor, parameters)


def get_mysql_adaptor(config: Any = None, arg: Any = None) -> MysqlAdaptor:
    """Create the MySQL adaptor."""
    return MysqlAdaptor()