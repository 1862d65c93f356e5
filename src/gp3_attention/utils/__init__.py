from .logging import HostLogHandler, ThrottledLogger

__all__ = ["HostLogHandler", "ThrottledLogger"]
