# training_portal/modules/dashboard/model.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ...utils.helpers import display_name

# Views the app can route to
VIEW_LOADING = "loading"
VIEW_LOGIN = "login"
VIEW_ADMIN = "admin"
VIEW_TRAINEE = "trainee"


@dataclass(frozen=True)
class UserSummary:
    """One row of the admin user table."""
    user_id: str
    email: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    role: Optional[str]
    created_at: Optional[str]
    highest_score: Optional[int]

    @property
    def display_name(self) -> str:
        return display_name(
            {"first_name": self.first_name, "last_name": self.last_name},
            email=self.email,
            default="N/A",
        )

    def matches(self, term: str) -> bool:
        """Case-insensitive match on display name or email; blank matches all."""
        t = (term or "").strip().lower()
        if not t:
            return True
        return t in self.display_name.lower() or t in (self.email or "").lower()
