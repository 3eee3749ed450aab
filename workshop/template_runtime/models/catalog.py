"""Context catalog item model.

Catalog items are the importable reference material (tickets, repositories,
documents) that templates bind to.  The catalog itself is owned elsewhere;
the runtime only reads it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ContextItem(BaseModel):
    id: str
    title: str = ""
    description: str = ""
    type: str = Field(default="document", description="Concrete item type, e.g. 'jira_ticket', 'git_repository'")
    source: str = Field(default="file", description="Import source, e.g. 'jira', 'git', 'file'")
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    content: Any = None
    added_at: datetime | None = None
