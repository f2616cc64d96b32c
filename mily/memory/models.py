"""Data models for the conversation log."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

Role = Literal["user", "assistant"]


class MessageRecord(BaseModel):
    """One line of the conversation log."""

    model_config = ConfigDict(frozen=True)

    when: datetime
    role: Role
    text: str

    def render(self) -> str:
        """Format for prompt context: ``[timestamp] role: text``."""
        return f"[{self.when.isoformat()}] {self.role}: {self.text}"
