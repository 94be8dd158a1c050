from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class MessageRecord:
    external_message_id: str
    channel_id: str
    author_id: str
    author_name: str
    content: str
    timestamp: int
    guild_id: str | None = None
    display_name: str | None = None
    referenced_message_id: str | None = None
    id: int | None = None
    # Filled on read from the referenced row; never written back.
    reply_to_speaker: str | None = None
    reply_to_content: str | None = None

    def __post_init__(self) -> None:
        self.channel_id = str(self.channel_id or "").strip()
        if not self.channel_id:
            raise ValueError("MessageRecord.channel_id must not be empty")
        if self.timestamp is None or str(self.timestamp).strip() == "":
            raise ValueError("MessageRecord.timestamp must not be empty")
        self.timestamp = int(self.timestamp)
        self.external_message_id = str(self.external_message_id)
        self.author_id = str(self.author_id)

    @property
    def speaker(self) -> str:
        return self.display_name or self.author_name or "someone"
