"""Filter expressions evaluated against event data."""

from __future__ import annotations

import enum
import operator
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from tinymqtt.event_source import FieldMeta, ValueType

_INT_RE = re.compile(r"[+-]?\d+")


@dataclass(frozen=True)
class ExprValue:
    """A typed value produced by evaluating an expression."""

    value_type: ValueType
    value: Any = None

    @property
    def boolean(self) -> bool:
        """True only for a BOOL value that is true."""
        return self.value_type is ValueType.BOOL and bool(self.value)


class BinaryOp(enum.IntEnum):
    EQ = 0
    GT = 1
    GTE = 2
    LT = 3
    LTE = 4
    AND = 5
    OR = 6
    LP = 7
    RP = 8


_SYMBOLS = {
    BinaryOp.EQ: "==",
    BinaryOp.GT: ">",
    BinaryOp.GTE: ">=",
    BinaryOp.LT: "<",
    BinaryOp.LTE: "<=",
    BinaryOp.AND: "and",
    BinaryOp.OR: "or",
}

_ORDERING = {
    BinaryOp.GT: operator.gt,
    BinaryOp.GTE: operator.ge,
    BinaryOp.LT: operator.lt,
    BinaryOp.LTE: operator.le,
}


def _is_quoted(token: str) -> bool:
    return len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'"


class ValueExpr:
    """Reads a field of the event, or a key of its JSON payload."""

    def __init__(self, field_meta: FieldMeta, payload_field: Optional[str] = None) -> None:
        self.field_meta = field_meta
        self.payload_field = payload_field if field_meta.value_type is ValueType.JSON else None

    def evaluate(self, event_data: Any) -> ExprValue:
        meta = self.field_meta
        raw = meta.read(event_data)
        if meta.value_type is ValueType.INT:
            return ExprValue(ValueType.INT, int(raw))
        if meta.value_type is ValueType.STR:
            if raw is None:
                return ExprValue(ValueType.NULL)
            return ExprValue(ValueType.STR, str(raw))
        if meta.value_type is ValueType.JSON:
            if not isinstance(raw, dict) or self.payload_field not in raw:
                return ExprValue(ValueType.NULL)
            item = raw[self.payload_field]
            if isinstance(item, str):
                return ExprValue(ValueType.STR, item)
            if isinstance(item, bool):
                return ExprValue(ValueType.BOOL, item)
            if isinstance(item, (int, float)):
                return ExprValue(ValueType.INT, int(item))
            if item is None:
                return ExprValue(ValueType.NULL)
            return ExprValue(ValueType.JSON, item)
        return ExprValue(meta.value_type, raw)

    def __str__(self) -> str:
        if self.field_meta.value_type is not ValueType.JSON:
            return "${" + self.field_meta.field_name + "}"
        return "${payload." + str(self.payload_field) + "}"


class ConstExpr:
    """A literal integer, boolean or string."""

    def __init__(self, value: ExprValue) -> None:
        self.value = value

    @classmethod
    def from_token(cls, token: str) -> "ConstExpr":
        """Interpret a rule token: integer, true/false, or (optionally quoted) string."""
        if _INT_RE.fullmatch(token):
            return cls(ExprValue(ValueType.INT, int(token)))
        if token == "true":
            return cls(ExprValue(ValueType.BOOL, True))
        if token == "false":
            return cls(ExprValue(ValueType.BOOL, False))
        if _is_quoted(token):
            return cls(ExprValue(ValueType.STR, token[1:-1]))
        return cls(ExprValue(ValueType.STR, token))

    def evaluate(self, event_data: Any) -> ExprValue:
        return self.value

    def __str__(self) -> str:
        if self.value.value_type is ValueType.STR:
            return self.value.value
        return str(int(self.value.value or 0))


class BinaryExpr:
    """A comparison or logical operator over two sub-expressions."""

    def __init__(self, op: BinaryOp, priority: int = 0, left: "Expr | None" = None,
                 right: "Expr | None" = None) -> None:
        self.op = op
        self.priority = priority
        self.left = left
        self.right = right

    def evaluate(self, event_data: Any) -> ExprValue:
        if self.left is None or self.right is None:
            raise ValueError("binary expression is missing an operand")
        left = self.left.evaluate(event_data)
        right = self.right.evaluate(event_data)
        result = False
        if left.value_type == right.value_type:
            kind = left.value_type
            a, b = left.value, right.value
            if self.op is BinaryOp.EQ:
                if kind in (ValueType.STR, ValueType.INT, ValueType.BOOL):
                    result = a == b
            elif self.op in _ORDERING:
                if kind in (ValueType.STR, ValueType.INT):
                    result = _ORDERING[self.op](a, b)
            elif self.op is BinaryOp.AND:
                if kind is ValueType.BOOL:
                    result = bool(a) and bool(b)
            elif self.op is BinaryOp.OR:
                if kind is ValueType.BOOL:
                    result = bool(a) or bool(b)
        return ExprValue(ValueType.BOOL, bool(result))

    def __str__(self) -> str:
        return _SYMBOLS.get(self.op, "")


Expr = Union[ValueExpr, ConstExpr, BinaryExpr]


def format_inorder(expr: Expr) -> str:
    """The expression tree written in in-order, each node followed by a space."""
    if not isinstance(expr, BinaryExpr):
        return f"{expr} "
    return f"{format_inorder(expr.left)}{expr} {format_inorder(expr.right)}"


def format_preorder(expr: Expr) -> str:
    """The expression tree written in pre-order, each node followed by a space."""
    if not isinstance(expr, BinaryExpr):
        return f"{expr} "
    return f"{expr} {format_preorder(expr.left)}{format_preorder(expr.right)}"