"""Weighted completion score of an application.

Points: three main forms at 20 each, required documents at 30, and a
10 point bonus once all four supplementary forms are complete.
"""

import asyncio
import math
from collections.abc import Iterable

from docintake.database.repositories.progress_repository import ProgressRepository
from docintake.documents.models import FormProgress, RequiredDocumentSet, Slot
from docintake.logging.logger import Log

FORM_WEIGHT = 20
DOCUMENTS_WEIGHT = 30
BONUS_POINTS = 10


def _clamp_percentage(value: float) -> float:
    return min(max(float(value), 0.0), 100.0)


def document_completion(slots: Iterable[Slot], required: RequiredDocumentSet) -> float:
    """Share of required document groups with at least one file (0.0 - 1.0).

    Slots are grouped by document type and applicant uuid; a group is
    complete when any of its slots holds a file.
    """
    groups: dict[tuple[str, str | None], bool] = {}
    for slot in slots:
        if not slot.is_required:
            continue
        if slot.document_type_id not in required.for_key(slot.applicant_key):
            continue
        group = (slot.document_type_id, slot.applicant_uuid)
        groups[group] = groups.get(group, False) or slot.has_file
    if not groups:
        return 0.0
    return sum(1 for complete in groups.values() if complete) / len(groups)


def score(forms: FormProgress, slots: Iterable[Slot], required: RequiredDocumentSet) -> int:
    """Overall completion in whole percent, always within [0, 100]."""
    points = sum(_clamp_percentage(pct) / 100 * FORM_WEIGHT for pct in forms.weighted_forms)
    points += document_completion(slots, required) * DOCUMENTS_WEIGHT
    if sum(forms.bonus_forms) == 4 * 100:
        points += BONUS_POINTS
    # Half-up rounding; round() would round 52.5 down to 52.
    return int(min(max(math.floor(points + 0.5), 0), 100))


class DebouncedProgressWriter:
    """Persists the overall score at most once per quiet period.

    Each ``schedule`` call restarts the delay. When the delay expires the
    latest value is written, unless it differs from the last persisted
    value by less than ``min_delta``.
    """

    def __init__(
        self,
        progress_repo: ProgressRepository,
        user_id: str,
        delay_seconds: float = 0.5,
        min_delta: int = 1,
        last_persisted: int | None = None,
    ) -> None:
        self._progress_repo = progress_repo
        self._user_id = user_id
        self._delay_seconds = delay_seconds
        self._min_delta = min_delta
        self._last_persisted = last_persisted
        self._pending_value: int | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def last_persisted(self) -> int | None:
        return self._last_persisted

    @last_persisted.setter
    def last_persisted(self, value: int | None) -> None:
        self._last_persisted = value

    def schedule(self, value: int) -> None:
        self._pending_value = value
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._write_later())

    async def flush(self) -> None:
        """Write any pending value immediately."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        await self._write_pending()

    async def _write_later(self) -> None:
        await asyncio.sleep(self._delay_seconds)
        await self._write_pending()

    async def _write_pending(self) -> None:
        value = self._pending_value
        self._pending_value = None
        if value is None:
            return
        if self._last_persisted is not None and abs(value - self._last_persisted) < self._min_delta:
            Log.debug("Progress change below threshold, skipping write", user_id=self._user_id)
            return
        try:
            await asyncio.to_thread(self._progress_repo.save_overall, self._user_id, value)
        except Exception as exc:
            Log.error(f"Failed to persist progress: {exc}", user_id=self._user_id)
            return
        self._last_persisted = value
        Log.info(f"Progress persisted: {value}%", user_id=self._user_id)
