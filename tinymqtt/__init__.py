"""Parts of a small MQTT broker: buffers, sockets, threads, console commands, rules and message storage."""

__version__ = "0.1.0"