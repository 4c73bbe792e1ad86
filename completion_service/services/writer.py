"""Progress writer: persists the aggregate as the authoritative record.

Merge rules applied on every commit:

  started_at        set on the first write, then preserved
  completed_at      set once on the first transition into "completed",
                    never cleared afterwards
  last_accessed_at  refreshed to now on every write

The percentage is a ratchet.  When a recalculation derives a lower
percentage than the stored one (units were added to the course after the
learner progressed), the stored percentage, counts and status are kept and
a warning is logged.  A derived status behind the stored one is held the
same way, so status never moves backward on its own;
/v1/admin/courses/{course_id}/integrity lists the records held this way.
"""

from __future__ import annotations

import dataclasses
import logging

from completion_service.core.metrics import PROGRESS_RECALCULATIONS
from completion_service.models.progress import STATUS_ORDER, CourseProgress
from completion_service.repos.store import Store
from completion_service.services.clock import Clock, utc_now

logger = logging.getLogger(__name__)


class ProgressWriter:
    def __init__(self, store: Store, *, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    async def commit(self, progress: CourseProgress) -> CourseProgress:
        """Upsert *progress* merged with the stored record; return what was written."""
        now = self._clock()
        existing = await self._store.progress.get(progress.user_id, progress.course_id)

        if existing is not None and (
            progress.progress_percentage < existing.progress_percentage
            or STATUS_ORDER[progress.status] < STATUS_ORDER[existing.status]
        ):
            logger.warning(
                "Progress held at %d%% (derived %d%%) for user %s course %s",
                existing.progress_percentage,
                progress.progress_percentage,
                progress.user_id,
                progress.course_id,
                extra={
                    "user_id": str(progress.user_id),
                    "course_id": str(progress.course_id),
                },
            )
            record = dataclasses.replace(existing, last_accessed_at=now)
            outcome = "held"
        else:
            started_at = now
            completed_at = None
            if existing is not None:
                started_at = existing.started_at if existing.started_at is not None else now
                completed_at = existing.completed_at

            newly_completed = progress.status == "completed" and completed_at is None
            if newly_completed:
                completed_at = now

            record = dataclasses.replace(
                progress,
                started_at=started_at,
                completed_at=completed_at,
                last_accessed_at=now,
            )
            if newly_completed:
                outcome = "completed"
            elif existing is None:
                outcome = "created"
            else:
                outcome = "updated"

        await self._store.progress.upsert(record)
        PROGRESS_RECALCULATIONS.labels(outcome=outcome).inc()
        return record
