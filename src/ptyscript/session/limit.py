"""Output size limit for a session."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SizeLimit:
    """Running count of output bytes against an optional cap.

    Only child-to-caller bytes are counted.
    """

    limit: int | None = None
    total: int = 0

    def add(self, nbytes: int) -> bool:
        """Count ``nbytes`` more output. Returns True once the limit is met."""
        self.total += nbytes
        return self.exceeded

    @property
    def exceeded(self) -> bool:
        return self.limit is not None and self.total >= self.limit

    def budget(self, chunk: int) -> int:
        """How many bytes the next read may take without overshooting the limit.

        Always at least 1 so a read is never issued with size 0.
        """
        if self.limit is None:
            return chunk
        return max(1, min(chunk, self.limit - self.total))
