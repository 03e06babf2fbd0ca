# tinymqtt

Parts of a small MQTT broker, written in plain Python. The package has no
dependencies outside the standard library.

## Modules

- `tinymqtt.buffer`: `Buffer` is a FIFO byte buffer built from chunks of at
  least 512 bytes. It provides `append`, `prepend`, `peek`, `read` and
  `remove`, and `len(buf)` gives the number of readable bytes.
  - `peek16`, `peek32` and `peek64` return big-endian unsigned integers
    without consuming them. `read16`, `read32` and `read64` return them and
    consume them. Each raises `ValueError` when too few bytes are buffered.
  - `read_fd(sock, max_bytes)` receives from a socket into the buffer.
  - `write_fd(sock)` sends buffered bytes and drops the bytes that were sent.
  - `debug()` returns a text report on the chunks.
- `tinymqtt.netsock`: helpers for IPv4 TCP sockets and Unix-domain stream
  sockets.
  - Creating: `tcp_socket`, `unix_socket`.
  - Socket options: `set_reuse_addr`, `set_reuse_port`, `set_keepalive`,
    `set_tcp_no_delay`, `set_nonblocking`.
  - Binding and accepting: `bind`, `unix_bind`, `listen`, `accept`.
  - Connecting and closing: `connect`, `unix_connect`, `shutdown_write`.
  - Inspecting: `local_addr`, `peer_addr`, `get_error`.
  - `SocketAddress` holds an IPv4 host and port and renders as `host:port`.
    Build one with `addr_from_ip_port` or `addr_from_port`.
- `tinymqtt.msgqueue`: `MessageQueue` is a thread-safe queue that keeps two
  lists.
  - In blocking mode, `put` waits while `maxlen` messages are pending. A
    `maxlen` of 0 means no limit.
  - After `set_nonblock()`, neither `put` nor `get` waits, and `get` returns
    `None` when the queue is empty.
- `tinymqtt.thrdpool`: `ThreadPool` runs scheduled callables on worker
  threads.
  - Add work with `schedule(routine, context)`.
  - `increase()` adds one worker.
  - `in_pool()` tells whether the calling thread is a worker.
  - `destroy(pending)` stops the pool and passes each task that never ran, as
    a `Task`, to `pending`. A task may call `destroy` on its own pool.
  - The pool can also be used as a context manager.
- `tinymqtt.console_cmd`: `ConsoleCommand` is a tree of commands.
  - A command is a sequence of words: keywords (plain strings), `Option`s
    (one of a fixed set of words) and `Variable`s (any word).
  - `parse(line, context)` calls the handler with a dict of the captured
    words.
  - It raises `CommandSyntaxError` when the line does not match a command.
- `tinymqtt.event_source`: the event sources a rule can name (`device`,
  `topic`, `subscription`, `message`) and the fields each one exposes. The
  event data classes are `DeviceEvent`, `TopicEvent`, `SubscriptionEvent` and
  `PublishEvent`.
- `tinymqtt.events`: filter expressions, evaluated against event data.
  - The expression classes are `ValueExpr`, `ConstExpr` and `BinaryExpr`.
  - `format_inorder` and `format_preorder` write an expression tree out as
    text.
- `tinymqtt.adaptors`: `Adaptor` is the interface that receives rule output.
  - `MysqlAdaptor` has a `table` parameter. It collects each event as a
    `(table, row)` pair in its `rows` list.
  - `PluginHandle.from_adaptor` pairs an adaptor with the parameters it
    declares.
- `tinymqtt.rule_parser`: `RuleParser.parse` reads rules of the form
  `select <columns> from {<source>}|<topic> [where <filter>]` and returns a
  `ParseResult`.
  - A column may be aliased with `as`. Aliasing it to
    `{plugin.parameter}` maps it to a parameter of the adaptor.
  - A filter may use `==`, `>`, `>=`, `<`, `<=`, `&&`, `||` and parentheses.
  - Invalid rules raise `RuleParseError`, which carries `pos` and `info`.
  - `format_result` gives a readable report of a `ParseResult`.
- `tinymqtt.rule_engine`: `RuleEngine.add_rule` turns a rule into an
  `EventListener`.
  - `publish_event(Event(...))` delivers a non-message event to every
    listener of its source, newest listener first.
  - Rules on message topics are kept per topic filter and can be looked up
    with `topic_listeners(topic)`.
- `tinymqtt.msg_store`: `MemoryMessageStore` keeps outgoing `SendingPacket`s
  in order, within the inflight window of an `InflightSession`.
  - `store_message` tells whether a packet may be sent now.
  - `acknowledge_and_next` drops an acknowledged packet and returns the
    pending packet to send next.

## Examples

Reading a length-prefixed string from a buffer:

```python
from tinymqtt.buffer import Buffer

buf = Buffer()
buf.append(b"\x00\x05hello")
length = buf.read16()        # 5
payload = buf.read(length)   # b"hello"
```

Matching a console line against a command:

```python
from tinymqtt.console_cmd import ConsoleCommand, Variable

def add_user(args, context):
    return args["username"]

cmd = ConsoleCommand()
cmd.add(add_user, "add", "user", Variable("username"), Variable("password"))
cmd.parse("add user alice secret", None)   # returns "alice"
```

Running a rule on a device event:

```python
from tinymqtt.adaptors import MysqlAdaptor, PluginHandle
from tinymqtt.event_source import DeviceAction, DeviceEvent, EventType
from tinymqtt.rule_engine import Event, RuleEngine

adaptor = MysqlAdaptor()
engine = RuleEngine({"mysql": PluginHandle.from_adaptor(adaptor)})
engine.add_rule("select client_id as {mysql.table} from {device} where action == 0")
engine.publish_event(Event(EventType.DEVICE, DeviceEvent(DeviceAction.ONLINE, "c1", "u1")))
adaptor.rows   # [("c1", {})]
```

## What this package does not do

The package contains no MQTT broker or client. It does not decode or encode
MQTT packets, handle TLS connections or run an event loop. It provides no
command-line tools. `MysqlAdaptor` keeps rows in memory and writes them to no
database. `MemoryMessageStore` holds packets only in memory and never stores
them on disk or in a database.