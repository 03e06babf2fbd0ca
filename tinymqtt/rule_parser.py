"""Parser for rules of the form ``SELECT ... FROM ... [WHERE ...]``.

A rule selects fields of an event source and maps them either to the
parameters of an adaptor plugin (``{plugin.parameter}``) or to payload
values. The source is either ``{name}`` for a built-in event source or a
topic filter for published messages. An optional ``WHERE`` clause is
parsed into a filter expression tree.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from tinymqtt.adaptors import Adaptor, AdaptorValueType
from tinymqtt.event_source import EventSourceInfo, EventType, ValueType, default_event_sources
from tinymqtt.events import (
    BinaryExpr,
    BinaryOp,
    ConstExpr,
    Expr,
    ValueExpr,
    format_inorder,
    format_preorder,
)

_SYNTAX_ERROR = "Syntax error in expression"
_BLANKS = " \t"
_OPERATOR_CHARS = "=&|<>()"
_PAYLOAD_PREFIX = "payload."
_END_MARK = "$end"
_INT_RE = re.compile(r"[+-]?\d+")

_OPERATORS = {
    "==": (BinaryOp.EQ, 3),
    ">": (BinaryOp.GT, 3),
    ">=": (BinaryOp.GTE, 3),
    "<": (BinaryOp.LT, 3),
    "<=": (BinaryOp.LTE, 3),
    "&&": (BinaryOp.AND, 2),
    "||": (BinaryOp.OR, 2),
    "(": (BinaryOp.LP, 1),
    ")": (BinaryOp.RP, 1),
    _END_MARK: (BinaryOp.EQ, 0),
}

_ADAPTOR_TYPES = {
    ValueType.STR: AdaptorValueType.STR,
    ValueType.INT: AdaptorValueType.INTEGER,
    ValueType.BOOL: AdaptorValueType.BOOL,
}


class RuleParseError(ValueError):
    """A rule could not be parsed; ``pos`` is where the problem was found."""

    def __init__(self, pos: int, info: str) -> None:
        super().__init__(f"parse error at {pos}: {info}")
        self.pos = pos
        self.info = info


@dataclass
class SchemaMapping:
    """One selected column: how to compute it and where it goes.

    ``mapping_type`` is None for JSON payload fields, whose type is only
    known when an event arrives.
    """

    value_expr: Expr
    map_to_parameter: bool
    mapping_name: str
    mapping_type: Optional[AdaptorValueType]


@dataclass
class ParseResult:
    """Everything a parsed rule describes."""

    event_source: EventType
    source_topic: Optional[str] = None
    mappings: list = field(default_factory=list)
    adaptor: Optional[Adaptor] = None
    filter: Optional[Expr] = None
    need_json_payload: bool = False


def _skip_blank(text: str, i: int) -> int:
    while i < len(text) and text[i] in _BLANKS:
        i += 1
    return i


def _scan(text: str, i: int, stops: str) -> int:
    while i < len(text) and text[i] not in stops:
        i += 1
    return i


def _starts_ci(text: str, i: int, word: str) -> bool:
    return text[i:i + len(word)].lower() == word


def _is_quoted(token: str) -> bool:
    return len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'"


def _operator_name(text: str, i: int) -> str:
    if i >= len(text):
        return _END_MARK
    c = text[i]
    nxt = text[i + 1] if i + 1 < len(text) else ""
    if c in "()" or (c in "<>" and nxt != "="):
        return c
    return text[i:i + 2]


def _parameter_column(column: str) -> Optional[tuple[str, str]]:
    if len(column) <= 2:
        return None
    inner = column[1:-1]
    dot = inner.find(".")
    if dot <= 0 or dot == len(inner) - 1:
        return None
    return inner[:dot], inner[dot + 1:]


class RuleParser:
    """Parses rules against the built-in event sources and the loaded plugins."""

    def __init__(self, plugins: Optional[dict] = None) -> None:
        self.plugins: dict = dict(plugins or {})
        self.event_sources: dict = default_event_sources()

    def parse(self, rule: str) -> ParseResult:
        """Parse ``rule``; raises RuleParseError when it is not valid."""
        n = len(rule)
        i = _skip_blank(rule, 0)
        if not _starts_ci(rule, i, "select "):
            raise RuleParseError(i, _SYNTAX_ERROR)
        i = _skip_blank(rule, i + 7)

        schema: list[tuple[str, str]] = []
        while True:
            has_alias = False
            j = _scan(rule, i, _BLANKS + ",")
            source_col = rule[i:j]
            i = _skip_blank(rule, j)
            if i < n and rule[i] == ",":
                schema.append((source_col, source_col))
                i = _skip_blank(rule, i + 1)
                continue
            if _starts_ci(rule, i, "as "):
                has_alias = True
                i = _skip_blank(rule, i + 3)
                j = _scan(rule, i, _BLANKS + ",")
                schema.append((source_col, rule[i:j]))
                i = _skip_blank(rule, j)
                if i < n and rule[i] == ",":
                    i = _skip_blank(rule, i + 1)
                    continue
            if _starts_ci(rule, i, "from "):
                if not has_alias:
                    schema.append((source_col, source_col))
                i = _skip_blank(rule, i + 5)
                break
            raise RuleParseError(i, _SYNTAX_ERROR)

        if i < n and rule[i] == "{":
            j = _scan(rule, i, _BLANKS + "}")
            if j >= n or rule[j] != "}":
                raise RuleParseError(i, _SYNTAX_ERROR)
            name = rule[i + 1:j]
            info = self.event_sources.get(name)
            if info is None:
                raise RuleParseError(i, f"Invalid event source: {name}")
            result = ParseResult(info.source)
            i = _skip_blank(rule, j + 1)
        else:
            j = _scan(rule, i, _BLANKS)
            info = self.event_sources.get("message")
            if info is None:
                raise RuleParseError(i, "Invalid event source: message")
            result = ParseResult(EventType.MESSAGE, source_topic=rule[i:j])
            i = _skip_blank(rule, j)

        self._interpret_schema(info, result, schema)
        if result.adaptor is None:
            raise RuleParseError(i, "Adaptor is not specified")
        if i < n:
            if not _starts_ci(rule, i, "where "):
                raise RuleParseError(i, _SYNTAX_ERROR)
            i = _skip_blank(rule, i + 6)
            result.filter = self._parse_filter(rule[i:], info, result)
        return result

    def _interpret_schema(self, info: EventSourceInfo, result: ParseResult,
                          schema: list[tuple[str, str]]) -> None:
        for source_col, target_col in schema:
            meta = None
            const_type: Optional[AdaptorValueType] = None
            if _is_quoted(source_col):
                const_type = AdaptorValueType.STR
            elif _INT_RE.fullmatch(source_col):
                const_type = AdaptorValueType.INTEGER
            else:
                if source_col.startswith(_PAYLOAD_PREFIX):
                    meta = info.fields_meta.get("payload")
                    result.need_json_payload = True
                else:
                    meta = info.fields_meta.get(source_col)
                if meta is None:
                    raise RuleParseError(
                        0, f'Event source "{info.name}" has no field named "{source_col}"')

            if target_col.startswith("{") and target_col.endswith("}"):
                parts = _parameter_column(target_col)
                if parts is None:
                    raise RuleParseError(0, f"Invalid parameter: {target_col}")
                plugin_name, parameter_name = parts
                handle = self.plugins.get(plugin_name)
                if handle is None:
                    raise RuleParseError(0, f'adaptor plugin "{plugin_name}" is not loaded')
                result.adaptor = handle.adaptor
                if parameter_name not in handle.adaptor_parameters:
                    raise RuleParseError(
                        0, f'adaptor plugin "{plugin_name}" has no parameter named "{parameter_name}"')
                mapping_name, to_parameter = parameter_name, True
            else:
                if target_col.startswith(_PAYLOAD_PREFIX):
                    mapping_name = target_col[len(_PAYLOAD_PREFIX):]
                else:
                    mapping_name = target_col
                to_parameter = False

            if meta is not None:
                mapping_type = _ADAPTOR_TYPES.get(meta.value_type)
                if meta.value_type is ValueType.JSON:
                    value_expr: Expr = ValueExpr(meta, source_col[len(_PAYLOAD_PREFIX):])
                else:
                    value_expr = ValueExpr(meta)
            else:
                mapping_type = const_type
                value_expr = ConstExpr.from_token(source_col)
            result.mappings.append(SchemaMapping(value_expr, to_parameter, mapping_name, mapping_type))

    def _operand(self, token: str, pos: int, info: EventSourceInfo, result: ParseResult) -> Expr:
        if token.startswith(_PAYLOAD_PREFIX):
            meta = info.fields_meta.get("payload")
            if meta is None:
                raise RuleParseError(pos, f"Event source {info.name} has no payload")
            result.need_json_payload = True
            return ValueExpr(meta, token[len(_PAYLOAD_PREFIX):])
        meta = info.fields_meta.get(token)
        if meta is not None:
            return ValueExpr(meta)
        return ConstExpr.from_token(token)

    def _parse_filter(self, expr: str, info: EventSourceInfo, result: ParseResult) -> Expr:
        operands: list[Any] = []
        operators: list[BinaryExpr] = []
        n = len(expr)
        i = 0
        while True:
            i = _skip_blank(expr, i)
            at_end = i >= n
            if at_end or expr[i] in _OPERATOR_CHARS:
                name = _operator_name(expr, i)
                entry = _OPERATORS.get(name)
                if entry is None:
                    raise RuleParseError(i, f"Invalid operator {name}")
                op, priority = entry
                if operators and op is not BinaryOp.LP:
                    while priority <= operators[-1].priority:
                        if operators[-1].op is BinaryOp.LP:
                            operators.pop()
                            break
                        if len(operands) < 2:
                            raise RuleParseError(i, _SYNTAX_ERROR)
                        node = operators.pop()
                        node.right = operands.pop()
                        node.left = operands.pop()
                        operands.append(node)
                        if not operators:
                            break
                if at_end:
                    break
                if expr[i] != ")":
                    operators.append(BinaryExpr(op, priority))
                i += len(name)
            else:
                j = i
                while j < n and expr[j] not in _BLANKS and expr[j] not in _OPERATOR_CHARS:
                    j += 1
                operands.append(self._operand(expr[i:j], i, info, result))
                i = j
        if len(operands) != 1:
            raise RuleParseError(i, _SYNTAX_ERROR)
        return operands.pop()


def format_result(result: ParseResult) -> str:
    """A readable report of the event source and the filter tree."""
    names = {
        EventType.DEVICE: "{DEVICE}",
        EventType.TOPIC: "{TOPIC}",
        EventType.SUBSCRIPTION: "{SUB_UNSUB}",
    }
    source = names.get(result.event_source, result.source_topic)
    inorder = format_inorder(result.filter) if result.filter is not None else ""
    preorder = format_preorder(result.filter) if result.filter is not None else ""
    return (
        f"Event Source:\n{source}\n"
        f"Expression Tree InOrder:\n{inorder}\n"
        f"Expression Tree PreOrder:\n{preorder}\n"
    )