"""Cross-week guard against planning the same appointment twice."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

logger = logging.getLogger(__name__)


class DuplicateGuard:
    """Collect appointment ids already referenced by other active weekly plans."""

    def __init__(self, plan_store=None) -> None:
        self.plan_store = plan_store

    def used_appointment_ids(self, exclude_week: Optional[date] = None) -> set[str]:
        if self.plan_store is None:
            return set()
        used: set[str] = set()
        for plan in self.plan_store.list_active_plans(exclude_week=exclude_week):
            used |= plan.appointment_ids()
        if used:
            logger.info("%d appointment(s) already planned in other active weeks", len(used))
        return used
