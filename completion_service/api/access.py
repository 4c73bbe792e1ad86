"""Who may touch whose progress.

These need a path parameter as well as the Principal, so routes call them
directly instead of declaring them as dependencies.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status

from completion_service.models.principal import Principal


def ensure_can_read_progress(principal: Principal, user_id: UUID) -> None:
    """Learners read their own progress; admins read anyone's."""
    if principal.is_admin or principal.learner_id == user_id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You can only access your own progress",
    )


def calling_learner(principal: Principal) -> UUID:
    """The learner id behind a self-service call, or 403 for operator tokens."""
    learner_id = principal.learner_id
    if learner_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token subject is not a learner id",
        )
    return learner_id
