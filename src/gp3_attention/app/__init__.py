from .bridge import AsyncioTkinterBridge

__all__ = ["AsyncioTkinterBridge"]
