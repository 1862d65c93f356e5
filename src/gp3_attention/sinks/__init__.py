from .base import TelemetrySink
from .log import LogSink
from .zmq import ZMQSink

__all__ = ["LogSink", "TelemetrySink", "ZMQSink"]
