"""Per-user assignment counters and their invalidation.

Counters live outside the entity store and are recomputed lazily: an
invalidated user is counted again the next time someone asks.
"""

import logging
import threading

from sqlalchemy import func, select

from issuable.database.models import Issue, MergeRequest
from issuable.engine.state import OPEN_STATES

logger = logging.getLogger(__name__)

COUNTERS = {
    "assigned_open_issues_count": Issue,
    "assigned_open_merge_requests_count": MergeRequest,
}


def count_assigned_open(session, model, user_id: int) -> int:
    stmt = select(func.count(model.id)).where(
        model.assignee_id == user_id,
        model.state.in_(sorted(state.value for state in OPEN_STATES)),
        model.deleted_at.is_(None),
    )
    return session.scalar(stmt) or 0


class AssigneeCountCache:
    """Thread-safe store of ``user_id -> {counter name: value}``.

    Every invalidation bumps the user's generation; a recount that started
    before an invalidation is returned to its caller but not cached.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counts = {}
        self._generations = {}
        self._epoch = 0

    def __contains__(self, user_id):
        with self._lock:
            return user_id in self._counts

    def _version(self, user_id):
        return (self._epoch, self._generations.get(user_id, 0))

    def counts(self, session, user_id: int) -> dict:
        """Cached counters for ``user_id``, computed from the store on a miss."""
        with self._lock:
            cached = self._counts.get(user_id)
            version = self._version(user_id)
        if cached is not None:
            return dict(cached)

        computed = {
            name: count_assigned_open(session, model, user_id)
            for name, model in COUNTERS.items()
        }
        with self._lock:
            if self._version(user_id) == version:
                self._counts[user_id] = computed
            else:
                logger.debug(
                    f"Counters for user {user_id} invalidated while recounting, not caching",
                    extra={"user_id": user_id},
                )
        return dict(computed)

    def invalidate(self, user_id: int) -> None:
        with self._lock:
            self._counts.pop(user_id, None)
            self._generations[user_id] = self._generations.get(user_id, 0) + 1

    def clear(self) -> None:
        with self._lock:
            self._counts.clear()
            self._generations.clear()
            self._epoch += 1


class AssigneeCacheInvalidator:
    """Flushes counters after a committed change to who is assigned.

    The mutation path calls this itself once the change is durable; nothing
    here listens to ORM events.
    """

    def __init__(self, cache: AssigneeCountCache):
        self.cache = cache

    def assignee_changed(self, previous_id, current_id) -> list[int]:
        """Invalidate both the old and the new assignee, whichever exist.

        Returns the user ids that were invalidated.
        """
        invalidated = []
        for user_id in (previous_id, current_id):
            if user_id is not None and user_id not in invalidated:
                self.cache.invalidate(user_id)
                invalidated.append(user_id)

        logger.info(
            f"Assignee changed from {previous_id} to {current_id}",
            extra={"previous_assignee_id": previous_id, "assignee_id": current_id},
        )
        return invalidated

    def state_changed(self, assignee_id) -> list[int]:
        """An issuable opened or closed; its assignee's open counts moved."""
        if assignee_id is None:
            return []
        self.cache.invalidate(assignee_id)
        return [assignee_id]


assignee_counts = AssigneeCountCache()
default_invalidator = AssigneeCacheInvalidator(assignee_counts)
