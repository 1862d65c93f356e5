from typing import Any, Protocol, Sequence, runtime_checkable

@runtime_checkable
class HostUI(Protocol):
    """
    The host application the session runs inside (an editor, a Tk window,
    a terminal). The core only ever calls these methods; everything else
    about the host is its own business.
    """
    async def notify(self, message: str, choices: Sequence[str] = ()) -> str | None:
        """Shows a message. With choices, waits and returns the selected one (None if dismissed)."""
        ...

    def log(self, line: str) -> None:
        """Best-effort diagnostic output."""
        ...

    def has_active_context(self) -> bool:
        """True while there is an editable context the session can swap out."""
        ...

    async def open_material(self, content: str) -> Any:
        """Replaces the visible context with read-only `content`; returns a handle for restoring."""
        ...

    async def restore_material(self, handle: Any) -> None:
        """Closes the material, re-opens the prior context and disposes any transient provider."""
        ...
