"""Batch decisions over a list of request ids with per-item isolation."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable

from transcript_engine.certification.service import (
    ACTION_BULK_APPROVED,
    ACTION_BULK_REJECTED,
    CertificationService,
)
from transcript_engine.common.config import TranscriptSettings
from transcript_engine.common.exceptions import ReasonTooShortError, TranscriptError

logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    request_id: str
    success: bool
    code: str = "OK"
    message: str = ""


@dataclass
class BatchResult:
    outcomes: list[BatchOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    def by_id(self) -> dict[str, BatchOutcome]:
        return {o.request_id: o for o in self.outcomes}


def _unique(request_ids: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered = []
    for request_id in request_ids:
        if request_id not in seen:
            seen.add(request_id)
            ordered.append(request_id)
    return ordered


class BatchCoordinator:
    """Drives the state machine once per id; one failure never aborts the rest."""

    def __init__(self, settings: TranscriptSettings, service: CertificationService):
        self.settings = settings
        self.service = service

    async def approve_all(
        self, db, request_ids: Iterable[str], actor_ref: str,
    ) -> BatchResult:
        async def _approve(request_id: str) -> None:
            await self.service.approve(
                db, request_id, actor_ref, action=ACTION_BULK_APPROVED,
            )

        result = await self._run(_unique(request_ids), _approve)
        logger.info(
            "Batch approve by %s: %d succeeded, %d failed",
            actor_ref, result.succeeded, result.failed,
        )
        return result

    async def reject_all(
        self, db, request_ids: Iterable[str], actor_ref: str, reason: str,
    ) -> BatchResult:
        ids = _unique(request_ids)
        try:
            reason = self.service.check_reason(reason)
        except ReasonTooShortError as e:
            return BatchResult([
                BatchOutcome(request_id, False, e.code, e.message) for request_id in ids
            ])

        async def _reject(request_id: str) -> None:
            await self.service.reject(
                db, request_id, actor_ref, reason, action=ACTION_BULK_REJECTED,
            )

        result = await self._run(ids, _reject)
        logger.info(
            "Batch reject by %s: %d succeeded, %d failed",
            actor_ref, result.succeeded, result.failed,
        )
        return result

    async def _run(
        self,
        request_ids: list[str],
        decide: Callable[[str], Awaitable[None]],
    ) -> BatchResult:
        semaphore = asyncio.Semaphore(max(1, self.settings.batch_concurrency))

        async def _one(request_id: str) -> BatchOutcome:
            async with semaphore:
                try:
                    await decide(request_id)
                except TranscriptError as e:
                    return BatchOutcome(request_id, False, e.code, e.message)
                except Exception:
                    logger.exception("Unexpected error deciding request %s", request_id)
                    return BatchOutcome(request_id, False, "INTERNAL_ERROR", "Unexpected error")
                return BatchOutcome(request_id, True)

        outcomes = await asyncio.gather(*(_one(request_id) for request_id in request_ids))
        return BatchResult(list(outcomes))
