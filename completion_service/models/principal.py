from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

ADMIN_ROLE = "admin"


@dataclass(frozen=True, slots=True)
class Principal:
    """The caller, as asserted by a verified bearer token.

    ``subject`` is recorded verbatim as ``performed_by`` on audit entries.
    Learners are identified by a UUID subject; operator accounts may use
    any string (an email, a service name).
    """

    subject: str
    roles: frozenset[str]

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles

    @property
    def learner_id(self) -> UUID | None:
        try:
            return UUID(self.subject)
        except ValueError:
            return None
