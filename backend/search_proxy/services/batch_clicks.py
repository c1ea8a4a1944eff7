"""Batch click processing

Every click in a batch is validated and attributed on its own; all of them
are dispatched concurrently and a failure in one never affects another.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

from search_proxy.core.exceptions import AnalyticsValidationError
from search_proxy.schemas.analytics import parse_click_event
from search_proxy.services.click_attribution import (
    AttributionResult,
    ClickAttributionEngine,
)

logger = logging.getLogger(__name__)


@dataclass
class ItemFailure:
    index: int
    error: str
    validation: bool


@dataclass
class BatchResult:
    processed_count: int
    total_count: int
    results: List[Optional[AttributionResult]] = field(default_factory=list)
    failures: List[ItemFailure] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return self.total_count - self.processed_count


class BatchClickProcessor:
    """클릭 배치 처리기"""

    def __init__(self, engine: ClickAttributionEngine):
        self.engine = engine

    async def _process_one(self, raw: Mapping[str, Any], overrides: Mapping[str, Any]) -> AttributionResult:
        click = parse_click_event(raw, **overrides)
        return await self.engine.attribute_click(click)

    async def attribute_clicks(
        self,
        raw_clicks: Sequence[Mapping[str, Any]],
        **overrides: Any,
    ) -> BatchResult:
        """Attribute every click independently

        ``overrides`` (e.g. ``client_ip`` from the request) are applied to
        each click before validation.
        """
        total = len(raw_clicks)
        if total == 0:
            return BatchResult(processed_count=0, total_count=0)

        outcomes = await asyncio.gather(
            *(self._process_one(raw, overrides) for raw in raw_clicks),
            return_exceptions=True,
        )

        results: List[Optional[AttributionResult]] = []
        failures: List[ItemFailure] = []
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, AttributionResult):
                results.append(outcome)
                continue

            results.append(None)
            validation = isinstance(outcome, AnalyticsValidationError)
            failures.append(ItemFailure(index=index, error=str(outcome), validation=validation))
            if validation:
                logger.warning(f"Skipping click #{index} with missing required fields: {outcome}")
            else:
                logger.error(f"Click #{index} failed: {outcome}")

        processed = total - len(failures)
        logger.info(
            f"Batch processing complete: processed={processed}, total={total}, "
            f"skipped={total - processed}"
        )
        return BatchResult(
            processed_count=processed,
            total_count=total,
            results=results,
            failures=failures,
        )
