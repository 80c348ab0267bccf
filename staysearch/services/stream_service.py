"""Search Stream Service

intent 결과 → 검색 파이프라인 → 타입 있는 업데이트 스트림.

writer 태스크가 bounded asyncio.Queue에 업데이트를 넣고, 호출자는 async iterator로 소비합니다.
큐가 가득 차면 writer가 대기합니다 (드롭 없음). 소비자가 중단하면 writer도 취소됩니다.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional

from staysearch.backends.base import backend_label
from staysearch.core.config import settings
from staysearch.core.exceptions import StaySearchException
from staysearch.core.logging import logger
from staysearch.engine.orchestrator import SearchOrchestrator, SearchOutcome
from staysearch.engine.result import TIE, DualSearchOutcome
from staysearch.schemas.search_schema import IntentResult, SearchRequest
from staysearch.schemas.stream_schema import StreamUpdate
from staysearch.services.rate_limiter import SlidingWindowRateLimiter


RATE_LIMIT_MESSAGE = "Too many requests. Please wait a moment before searching again."
GENERIC_ERROR_MESSAGE = "Sorry, something went wrong while searching. Please try again."


def build_intro_text(request: SearchRequest) -> str:
    """검색 시작 안내 문구"""
    text = (
        f"Searching stays in {request.location} from {request.check_in.isoformat()} "
        f"to {request.check_out.isoformat()} for {request.guests} "
        f"{'guest' if request.guests == 1 else 'guests'}"
    )
    if request.budget_min is not None and request.budget_max is not None:
        text += f", {request.budget_min:g}-{request.budget_max:g} {request.currency} per night"
    elif request.budget_max is not None:
        text += f", up to {request.budget_max:g} {request.currency} per night"
    elif request.budget_min is not None:
        text += f", from {request.budget_min:g} {request.currency} per night"
    return text + "."


def build_summary_text(outcome: SearchOutcome) -> str:
    """결과 요약 문구 (단일: 건수 + notes, 듀얼: 승자)"""
    if isinstance(outcome, DualSearchOutcome):
        winner = outcome.evaluation.comparison.winner
        lines = [
            "No clear winner: both backends performed about the same."
            if winner == TIE
            else f"{backend_label(winner)} performed better on this search."
        ]
        lines.extend(outcome.notes)
        return "\n".join(lines)

    count = len(outcome.ranked.listings)
    if count == 0:
        lines = ["I couldn't find any listings for this search. Try different dates or a wider budget."]
    else:
        lines = [f"Found {count} {'listing' if count == 1 else 'listings'} using {backend_label(outcome.backend)}."]
    lines.extend(outcome.ranked.notes)
    return "\n".join(lines)


class SearchStreamService:
    """스트리밍 검색 서비스

    Args:
        orchestrator: 검색 오케스트레이터
        rate_limiter: 프로세스 공용 rate limiter
        queue_size: 채널 크기 (기본: settings.stream_queue_size)
        timeout_s: 파이프라인 데드라인 (None이면 오케스트레이터 기본값)
    """

    def __init__(
        self,
        orchestrator: SearchOrchestrator,
        rate_limiter: SlidingWindowRateLimiter,
        queue_size: Optional[int] = None,
        timeout_s: Optional[float] = None,
    ):
        self.orchestrator = orchestrator
        self.rate_limiter = rate_limiter
        self.queue_size = queue_size or settings.stream_queue_size
        self.timeout_s = timeout_s

    async def stream(
        self,
        intent: IntentResult,
        client_id: str,
        mode: Optional[str] = None,
        model: Optional[str] = None,
        allow_fallback: bool = True,
    ) -> AsyncIterator[StreamUpdate]:
        """업데이트 스트림 (마지막은 항상 done)"""
        queue: asyncio.Queue[StreamUpdate] = asyncio.Queue(maxsize=self.queue_size)
        writer = asyncio.create_task(
            self._write(queue, intent, client_id, mode, model, allow_fallback),
            name=f"stream-writer:{client_id}",
        )

        try:
            while True:
                update = await queue.get()
                yield update
                if update.is_done:
                    break
        finally:
            if not writer.done():
                logger.info(f"[Stream] Consumer stopped early, cancelling writer for client={client_id}")
                writer.cancel()
            try:
                await writer
            except asyncio.CancelledError:
                pass

    async def _write(
        self,
        queue: asyncio.Queue[StreamUpdate],
        intent: IntentResult,
        client_id: str,
        mode: Optional[str],
        model: Optional[str],
        allow_fallback: bool,
    ) -> None:
        try:
            await self._produce(queue, intent, client_id, mode, model, allow_fallback)
        except asyncio.CancelledError:
            raise
        except StaySearchException as e:
            logger.warning(f"[Stream] Search aborted for client={client_id}: {e}")
            await queue.put(StreamUpdate.error_update(e.user_message))
        except Exception as e:
            logger.error(f"[Stream] Unexpected error for client={client_id}: {type(e).__name__}: {e}", exc_info=True)
            await queue.put(StreamUpdate.error_update(GENERIC_ERROR_MESSAGE))

        await queue.put(StreamUpdate.done())

    async def _produce(
        self,
        queue: asyncio.Queue[StreamUpdate],
        intent: IntentResult,
        client_id: str,
        mode: Optional[str],
        model: Optional[str],
        allow_fallback: bool,
    ) -> None:
        decision = await self.rate_limiter.check(client_id)
        if not decision.allowed:
            await queue.put(StreamUpdate.error_update(RATE_LIMIT_MESSAGE, retry_after=decision.retry_after_s))
            return

        if intent.kind == "clarification":
            await queue.put(StreamUpdate.text_update(intent.message or ""))
            return
        if intent.kind == "error":
            await queue.put(StreamUpdate.error_update(intent.message or GENERIC_ERROR_MESSAGE))
            return

        request = intent.request
        await queue.put(StreamUpdate.text_update(build_intro_text(request)))

        async def on_status(message: str) -> None:
            await queue.put(StreamUpdate.status_update(message))

        outcome = await self.orchestrator.search(
            request,
            mode=mode,
            on_status=on_status,
            allow_fallback=allow_fallback,
            model=model,
            timeout_s=self.timeout_s,
        )

        await queue.put(StreamUpdate.results_update(outcome.to_payload()))
        await queue.put(StreamUpdate.text_update(build_summary_text(outcome)))
