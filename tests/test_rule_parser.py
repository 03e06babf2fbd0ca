import pytest

from tinymqtt.adaptors import AdaptorValueType, MysqlAdaptor, PluginHandle
from tinymqtt.event_source import DeviceAction, DeviceEvent, EventType, PublishEvent, ValueType
from tinymqtt.events import BinaryOp, ConstExpr, ValueExpr, format_inorder, format_preorder
from tinymqtt.rule_parser import RuleParseError, RuleParser, format_result


@pytest.fixture
def handle():
    return PluginHandle.from_adaptor(MysqlAdaptor())


@pytest.fixture
def parser(handle):
    return RuleParser({"mysql": handle})


def test_select_maps_fields_and_parameters(parser, handle):
    result = parser.parse('select client_id, "users" as {mysql.table} from {device}')
    assert result.event_source is EventType.DEVICE
    assert result.source_topic is None
    assert result.adaptor is handle.adaptor
    assert result.filter is None
    first, second = result.mappings
    assert first.mapping_name == "client_id"
    assert first.map_to_parameter is False
    assert first.mapping_type is AdaptorValueType.STR
    assert isinstance(first.value_expr, ValueExpr)
    assert second.mapping_name == "table"
    assert second.map_to_parameter is True
    assert second.mapping_type is AdaptorValueType.STR
    assert second.value_expr.evaluate(None).value == "users"


def test_integer_constant_column(parser):
    result = parser.parse("select 7 as {mysql.table} from {device}")
    mapping = result.mappings[0]
    assert mapping.mapping_type is AdaptorValueType.INTEGER
    assert isinstance(mapping.value_expr, ConstExpr)
    assert mapping.value_expr.evaluate(None).value == 7


def test_alias_into_payload_strips_prefix(parser):
    result = parser.parse('select client_id as payload.cid, "t" as {mysql.table} from {device}')
    assert result.mappings[0].mapping_name == "cid"
    assert result.mappings[0].map_to_parameter is False


def test_filter_evaluates_against_event(parser):
    result = parser.parse('select "t" as {mysql.table} from {device} where action == 0')
    assert result.filter.op is BinaryOp.EQ
    assert result.filter.evaluate(DeviceEvent(DeviceAction.ONLINE)).boolean is True
    assert result.filter.evaluate(DeviceEvent(DeviceAction.OFFLINE)).boolean is False


def test_and_binds_looser_than_comparison(parser):
    result = parser.parse('select "t" as {mysql.table} from {device} where action == 0 && client_id == abc')
    root = result.filter
    assert root.op is BinaryOp.AND
    assert root.left.op is BinaryOp.EQ
    assert root.right.op is BinaryOp.EQ
    assert root.evaluate(DeviceEvent(DeviceAction.ONLINE, "abc")).boolean is True
    assert root.evaluate(DeviceEvent(DeviceAction.ONLINE, "xyz")).boolean is False


def test_parentheses_group_expression(parser):
    rule = ('select "t" as {mysql.table} from {device} '
            "where (action == 1 || action == 0) && client_id == c1")
    root = parser.parse(rule).filter
    assert root.op is BinaryOp.AND
    assert root.left.op is BinaryOp.OR
    assert root.evaluate(DeviceEvent(DeviceAction.OFFLINE, "c1")).boolean is True
    assert root.evaluate(DeviceEvent(DeviceAction.OFFLINE, "c2")).boolean is False


def test_message_source_with_payload(parser):
    result = parser.parse("select payload.temp as {mysql.table} from sensors/+ where payload.temp > 10")
    assert result.event_source is EventType.MESSAGE
    assert result.source_topic == "sensors/+"
    assert result.need_json_payload is True
    mapping = result.mappings[0]
    assert mapping.mapping_type is None
    hot = PublishEvent(payload_as_json={"temp": 20})
    cold = PublishEvent(payload_as_json={"temp": 5})
    assert mapping.value_expr.evaluate(hot).value == 20
    assert mapping.value_expr.evaluate(hot).value_type is ValueType.INT
    assert result.filter.evaluate(hot).boolean is True
    assert result.filter.evaluate(cold).boolean is False


def test_keywords_are_case_insensitive(parser):
    result = parser.parse("SELECT client_id AS {mysql.table} FROM {device} WHERE action == 1")
    assert result.event_source is EventType.DEVICE
    assert result.filter.evaluate(DeviceEvent(DeviceAction.OFFLINE)).boolean is True


@pytest.mark.parametrize("rule, info", [
    ("update a from {device}", "Syntax error in expression"),
    ("select a as {mysql.table} from {nosuch}", "Invalid event source: nosuch"),
    ("select client_id from {device}", "Adaptor is not specified"),
    ("select client_id as {redis.table} from {device}", 'adaptor plugin "redis" is not loaded'),
    ("select client_id as {mysql.column} from {device}",
     'adaptor plugin "mysql" has no parameter named "column"'),
    ("select client_id as {mysql} from {device}", "Invalid parameter: {mysql}"),
    ("select qos as {mysql.table} from {device}", 'Event source "device" has no field named "qos"'),
    ("select client_id as {mysql.table} from {device} where payload.x == 1",
     "Event source device has no payload"),
    ("select client_id as {mysql.table} from {device} when action == 1", "Syntax error in expression"),
    ("select client_id as {mysql.table} from {device} where ", "Syntax error in expression"),
    ("select client_id as {mysql.table} from {device} where == 1", "Syntax error in expression"),
    ("select client_id as {mysql.table} from {device where action == 1", "Syntax error in expression"),
])
def test_parse_errors(parser, rule, info):
    with pytest.raises(RuleParseError) as excinfo:
        parser.parse(rule)
    assert excinfo.value.info == info


def test_error_position_points_at_unexpected_token(parser):
    rule = "select a b from {device}"
    with pytest.raises(RuleParseError) as excinfo:
        parser.parse(rule)
    assert excinfo.value.pos == rule.index("b from")


def test_invalid_operator_position_is_within_filter(parser):
    with pytest.raises(RuleParseError) as excinfo:
        parser.parse("select client_id as {mysql.table} from {device} where action = 1")
    assert excinfo.value.info.startswith("Invalid operator =")
    assert excinfo.value.pos == "action = 1".index("=")


def test_parser_without_plugins_has_no_adaptor():
    with pytest.raises(RuleParseError) as excinfo:
        RuleParser().parse("select client_id as {mysql.table} from {device}")
    assert excinfo.value.info == 'adaptor plugin "mysql" is not loaded'


def test_format_result_reports_source_and_trees(parser):
    result = parser.parse('select "t" as {mysql.table} from {device} where action == 0 && client_id == abc')
    text = format_result(result)
    assert text.startswith("Event Source:\n{DEVICE}\n")
    assert f"Expression Tree InOrder:\n{format_inorder(result.filter)}\n" in text
    assert f"Expression Tree PreOrder:\n{format_preorder(result.filter)}\n" in text


def test_format_result_uses_topic_for_messages(parser):
    result = parser.parse("select qos as {mysql.table} from a/b where qos == 1")
    assert format_result(result).startswith("Event Source:\na/b\n")