from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

from pydantic import ValidationError

from ..data_store.config import DEFAULT_DATA_CONFIG
from ..recommendations.models import InteractionAction, RecommendationInteraction

logger = logging.getLogger(__name__)


class InteractionWriteError(RuntimeError):
    """An interaction could not be persisted; the caller should retry."""


class InteractionLog:
    """
    Append-only log of recommendation interactions.

    Records are kept in memory and, when ``path`` is set, appended to a
    JSON-lines file that is replayed on start-up.  Records are never updated
    or removed here.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._records: list[RecommendationInteraction] = []
        self._lock = threading.Lock()
        if path is not None and path.exists():
            self._records.extend(self._replay(path))

    @staticmethod
    def _replay(path: Path) -> list[RecommendationInteraction]:
        records: list[RecommendationInteraction] = []
        with path.open(encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                if not line.strip():
                    continue
                try:
                    records.append(RecommendationInteraction.model_validate_json(line))
                except ValidationError:
                    logger.warning("Skipping malformed interaction at %s:%d", path, lineno)
        return records

    def record_interaction(
        self,
        customer_id: str | None,
        tenant_id: str,
        item_id: str,
        action: InteractionAction | str,
    ) -> RecommendationInteraction:
        interaction = RecommendationInteraction(
            customer_id=customer_id,
            tenant_id=tenant_id,
            recommended_item_id=item_id,
            action=InteractionAction(action),
            timestamp=time.time(),
        )
        with self._lock:
            if self._path is not None:
                try:
                    with self._path.open("a", encoding="utf-8") as fh:
                        fh.write(interaction.model_dump_json() + "\n")
                except OSError as exc:
                    logger.error(
                        "Failed to record %s interaction for item %s (tenant %s)",
                        interaction.action.value, item_id, tenant_id, exc_info=True,
                    )
                    raise InteractionWriteError(str(exc)) from exc
            self._records.append(interaction)
        return interaction

    def get_interactions(self, tenant_id: str | None = None) -> list[RecommendationInteraction]:
        with self._lock:
            records = list(self._records)
        if tenant_id is None:
            return records
        return [r for r in records if r.tenant_id == tenant_id]

    def clear(self) -> None:
        """Drop the in-memory copy; the file on disk is left untouched."""
        with self._lock:
            self._records.clear()


_log: InteractionLog | None = None
_log_lock = threading.Lock()


def get_interaction_log() -> InteractionLog:
    """Return the process-wide interaction log, creating it once on first call."""
    global _log
    if _log is None:
        with _log_lock:
            if _log is None:
                _log = InteractionLog(DEFAULT_DATA_CONFIG.interaction_log)
    return _log
