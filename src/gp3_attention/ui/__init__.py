# The Tk modules are imported on demand; headless runs must not need tkinter.
from .console import ConsoleHost

__all__ = ["ConsoleHost"]
