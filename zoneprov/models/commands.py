"""Command-related data structures."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class CommandResult(BaseModel):
    """Outcome of one remote command executed over a secure channel.

    ``stdout`` and ``stderr`` are ``None`` when the stream produced no data at
    all, and ``""`` when it produced only a line terminator.
    """

    model_config = ConfigDict(frozen=True)

    command: str
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    exit_code: int
    elapsed_time: float = 0.0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Both streams joined, for parsing and log messages."""
        return "\n".join(s for s in (self.stdout, self.stderr) if s)
