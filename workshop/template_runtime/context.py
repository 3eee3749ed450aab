"""In-flight application context.

One ``InFlightApplication`` exists per template application that is
currently running, whether it was started by an API call, the CLI or the
trigger scheduler.  It lives in the ``ApplicationRegistry`` from dispatch
until the result is known.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime


@dataclass
class InFlightApplication:
    """Bookkeeping for a single running template application."""

    # -- Identity --------------------------------------------------------------
    template_id: str
    trigger_id: str | None = None
    application_id: str = field(default_factory=lambda: f"app_{uuid.uuid4().hex[:16]}")

    # -- Timing ----------------------------------------------------------------
    started_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def automated(self) -> bool:
        return self.trigger_id is not None
