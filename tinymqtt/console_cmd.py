"""A command tree for the interactive console.

Commands are built from keywords, variables (which capture any word) and
options (which accept one of a fixed set of words). Matching a line walks
the tree word by word and calls the function attached to the node reached.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

CommandFunc = Callable[[dict, Any], Any]

_VARIABLE_KEY = object()


class CommandSyntaxError(ValueError):
    """The line does not match a command."""


class NodeType(enum.Enum):
    KEYWORD = "keyword"
    VARIABLE = "variable"
    OPTION = "option"


@dataclass(eq=False)
class CommandNode:
    """One word position in the command tree."""

    type: NodeType
    name: Optional[str] = None
    command_exec: Optional[CommandFunc] = None
    next: dict = field(default_factory=dict)


@dataclass(frozen=True, init=False)
class Option:
    """A word chosen from ``values``, captured under ``name``."""

    name: str
    values: tuple

    def __init__(self, name: str, *values: str) -> None:
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True)
class Variable:
    """Any word, captured under ``name``."""

    name: str


def _find_existing(parents: list[CommandNode], key) -> Optional[CommandNode]:
    for parent in parents:
        node = parent.next.get(key)
        if node is not None:
            return node
    return None


def _link(parents: list[CommandNode], key, node: CommandNode) -> None:
    for parent in parents:
        parent.next[key] = node


class ConsoleCommand:
    """A set of commands sharing one tree, matched against input lines."""

    def __init__(self) -> None:
        self.root = CommandNode(NodeType.KEYWORD)

    @staticmethod
    def _add_option(parents: list[CommandNode], option: Option) -> list[CommandNode]:
        current = []
        for value in option.values:
            node = _find_existing(parents, value) or CommandNode(NodeType.OPTION, option.name)
            _link(parents, value, node)
            current.append(node)
        return current

    @staticmethod
    def _add_variable(parents: list[CommandNode], var: Variable) -> list[CommandNode]:
        node = _find_existing(parents, _VARIABLE_KEY) or CommandNode(NodeType.VARIABLE, var.name)
        _link(parents, _VARIABLE_KEY, node)
        return [node]

    @staticmethod
    def _add_keyword(parents: list[CommandNode], keyword: str) -> list[CommandNode]:
        node = _find_existing(parents, keyword) or CommandNode(NodeType.KEYWORD)
        _link(parents, keyword, node)
        return [node]

    def add(self, func: CommandFunc, *args) -> None:
        """Register ``func`` for the word sequence given by keywords, Options and Variables."""
        parents = [self.root]
        for arg in args:
            if isinstance(arg, Option):
                parents = self._add_option(parents, arg)
            elif isinstance(arg, Variable):
                parents = self._add_variable(parents, arg)
            elif isinstance(arg, str):
                parents = self._add_keyword(parents, arg)
            else:
                raise TypeError(f"unsupported command element: {arg!r}")
        for node in parents:
            node.command_exec = func

    def parse(self, line: str, context: Any = None) -> Any:
        """Match ``line`` and call the command it reaches with the captured words.

        A variable position takes precedence over keywords at the same
        place. If matching stops early, the command at the last node
        reached is still called, and CommandSyntaxError is raised after it;
        it is raised as well when the node reached has no command.
        """
        tokens = [token for token in line.split(" ") if token]
        current = self.root
        args: dict[str, str] = {}
        matched = True
        for token in tokens:
            node = current.next.get(_VARIABLE_KEY) or current.next.get(token)
            if node is None:
                matched = False
                break
            current = node
            if current.type is not NodeType.KEYWORD:
                args[current.name] = token
        if current.command_exec is None:
            raise CommandSyntaxError(f"syntax error in command: {line}")
        result = current.command_exec(args, context)
        if not matched:
            raise CommandSyntaxError(f"syntax error in command: {line}")
        return result