import pytest

from tinymqtt.adaptors import Adaptor, AdaptorValueType, MysqlAdaptor, PluginHandle
from tinymqtt.event_source import (
    DeviceAction,
    DeviceEvent,
    EventType,
    PublishEvent,
    TopicAction,
    TopicEvent,
)
from tinymqtt.rule_engine import Event, RuleEngine
from tinymqtt.rule_parser import RuleParseError


class Recorder(Adaptor):
    def __init__(self, log):
        self.log = log

    def register_parameters(self, parameters):
        parameters["tag"] = AdaptorValueType.STR

    def handle_event(self, parameters, payload):
        self.log.append(parameters["tag"].value)


@pytest.fixture
def mysql():
    return MysqlAdaptor()


@pytest.fixture
def engine(mysql):
    return RuleEngine({"mysql": PluginHandle.from_adaptor(mysql)})


DEVICE_RULE = "select client_id as {mysql.table}, username from {device} where action == 0"


def test_device_rule_passes_filter(engine, mysql):
    engine.add_rule(DEVICE_RULE)
    engine.publish_event(Event(EventType.DEVICE, DeviceEvent(DeviceAction.ONLINE, "c1", "alice")))
    assert mysql.rows == [("c1", {"username": "alice"})]


def test_device_rule_filtered_out(engine, mysql):
    engine.add_rule(DEVICE_RULE)
    engine.publish_event(Event(EventType.DEVICE, DeviceEvent(DeviceAction.OFFLINE, "c1", "alice")))
    assert mysql.rows == []


def test_null_string_field(engine, mysql):
    engine.add_rule(DEVICE_RULE)
    engine.publish_event(Event(EventType.DEVICE, DeviceEvent(DeviceAction.ONLINE, "c1", None)))
    assert mysql.rows == [("c1", {"username": None})]


def test_other_source_not_delivered(engine, mysql):
    engine.add_rule(DEVICE_RULE)
    engine.publish_event(Event(EventType.TOPIC, TopicEvent(TopicAction.ADD, "a/b")))
    assert mysql.rows == []


def test_newest_listener_first():
    log = []
    engine = RuleEngine({"rec": PluginHandle.from_adaptor(Recorder(log))})
    engine.add_rule("select 'a' as {rec.tag} from {device}")
    engine.add_rule("select 'b' as {rec.tag} from {device}")
    engine.publish_event(Event(EventType.DEVICE, DeviceEvent(DeviceAction.ONLINE, "c", "u")))
    assert log == ["b", "a"]


def test_message_rule_registered_by_topic(engine, mysql):
    engine.add_rule("select payload.temp as {mysql.table} from sensors/+ where qos > 0")
    listeners = engine.topic_listeners("sensors/+")
    assert len(listeners) == 1
    assert listeners[0].need_json_payload is True
    assert engine.topic_listeners("other") == []
    engine.publish_event(Event(EventType.MESSAGE, PublishEvent(qos=1, payload_as_json={"temp": 21})))
    assert mysql.rows == []
    listeners[0].publish(PublishEvent(qos=1, payload_as_json={"temp": 21}))
    assert mysql.rows == [(21, {})]
    listeners[0].publish(PublishEvent(qos=0, payload_as_json={"temp": 21}))
    assert len(mysql.rows) == 1


def test_invalid_rule_raises(engine):
    with pytest.raises(RuleParseError):
        engine.add_rule("bogus")
    with pytest.raises(RuleParseError):
        engine.add_rule("select username from {device}")