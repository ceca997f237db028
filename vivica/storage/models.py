"""PromptTemplate data model."""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from vivica.chat.models import make_id, utc_now


@dataclass
class PromptTemplate:
    """A reusable prompt saved by the user."""

    name: str
    content: str
    tags: list[str] = field(default_factory=list)
    id: str = field(default_factory=make_id)
    created_at: str = field(default_factory=utc_now)
    updated_at: str = ""

    def __post_init__(self) -> None:
        if not self.updated_at:
            self.updated_at = self.created_at

    def to_row(self) -> tuple:
        return (
            self.id,
            self.name,
            self.content,
            json.dumps(self.tags),
            self.created_at,
            self.updated_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> PromptTemplate:
        return cls(
            id=row[0],
            name=row[1],
            content=row[2],
            tags=json.loads(row[3]) if row[3] else [],
            created_at=row[4],
            updated_at=row[5],
        )
