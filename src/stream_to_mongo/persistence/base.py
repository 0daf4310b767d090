"""Base protocols for persistence layer."""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class RecordSink(Protocol):
    """Protocol for sinks fed one record at a time by a producer."""

    async def accept(self, record: dict[str, Any]) -> None:
        """Accept a single record. Returns once the sink is ready for the next one."""
        ...

    async def end(self) -> None:
        """Signal that no more records will arrive."""
        ...

    async def close(self) -> None:
        """Release resources without completing the stream."""
        ...
