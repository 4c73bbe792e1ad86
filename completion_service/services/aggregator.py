"""Progress aggregation: completion facts -> CourseProgress."""

from __future__ import annotations

import logging
from uuid import UUID

from completion_service.models.progress import CourseProgress, percentage, status_for
from completion_service.repos.store import Store
from completion_service.services.errors import NotFoundError

logger = logging.getLogger(__name__)


class ProgressAggregator:
    """Computes the progress aggregate for one (user, course) pair.

    Read-only: nothing here writes to the store.  The returned
    CourseProgress carries no timestamps; ProgressWriter fills those in
    when it merges the aggregate with the stored record.
    """

    def __init__(self, store: Store) -> None:
        self._store = store

    async def recalculate(self, user_id: UUID, course_id: UUID) -> CourseProgress:
        course = await self._store.content.get_course(course_id)
        if course is None:
            raise NotFoundError("course does not exist")

        unit_ids = await self._store.content.list_unit_ids(course_id)
        facts = await self._store.completions.list_completed(user_id, course_id)

        # Facts for units that have since left the course are not counted.
        completed_ids = {f.unit_id for f in facts} & unit_ids
        stale = len({f.unit_id for f in facts}) - len(completed_ids)
        if stale:
            logger.debug(
                "Ignoring %d stale completion fact(s) for course %s", stale, course_id
            )

        total = len(unit_ids)
        completed = len(completed_ids)
        pct = percentage(completed, total)
        return CourseProgress(
            user_id=user_id,
            course_id=course_id,
            status=status_for(pct),
            progress_percentage=pct,
            completed_units=completed,
            total_units=total,
        )
