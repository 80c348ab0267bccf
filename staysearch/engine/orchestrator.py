"""Search Orchestrator - Main Engine Entry Point

Coordinates the entire search pipeline:
1. Mode resolution and validation (ExecutionStrategy.plan)
2. Backend execution: connect → search (retry) → enrich → disconnect
3. Single mode: one fallback attempt when the primary fails
4. Dual mode: both backends concurrently, then evaluation
5. Ranking of each backend's listings

Only configuration errors and the whole-pipeline deadline abort a search;
backend-local failures are recorded on BackendExecutionResult.errors.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Sequence, Union

from staysearch.backends.base import SearchBackend, backend_label
from staysearch.backends.factory import BackendFactory, create_backend, missing_backend_config
from staysearch.backends.result import BackendExecutionResult
from staysearch.core.config import settings
from staysearch.core.exceptions import (
    EnrichmentError,
    PipelineTimeoutError,
    SearchError,
    StaySearchException,
)
from staysearch.core.logging import logger
from staysearch.engine.budget import BudgetConfig, BudgetManager
from staysearch.engine.evaluator import build_eval_result
from staysearch.engine.modes import ExecutionPlan, ExecutionStrategy, MissingConfig, resolve_mode
from staysearch.engine.pool import bounded_map
from staysearch.engine.ranking import RankingConfig, post_process_listings
from staysearch.engine.result import DualSearchOutcome, SingleSearchOutcome
from staysearch.engine.retry import retry_async
from staysearch.schemas.search_schema import Listing, ListingDetail, SearchRequest
from staysearch.services.summarizer import ReviewSummarizer


StatusCallback = Callable[[str], Awaitable[None]]
SearchOutcome = Union[SingleSearchOutcome, DualSearchOutcome]


def merge_enrichment(
    listings: Sequence[Listing],
    details: Sequence[ListingDetail],
    summaries: dict[str, str],
) -> list[Listing]:
    """상세/요약을 url 기준으로 병합 (원본에 없는 값만 채움)

    Args:
        listings: 검색 단계 원본 목록
        details: 상세 수집 결과 (실패 항목은 이미 제외됨)
        summaries: url → 리뷰 요약

    Returns:
        list[Listing]: 원본 순서 그대로, 병합된 새 인스턴스
    """
    by_url = {detail.url: detail for detail in details if detail.url}
    merged: list[Listing] = []

    for listing in listings:
        update: dict = {}
        detail = by_url.get(listing.url) if listing.url else None
        if detail is not None:
            if not listing.title and detail.title:
                update["title"] = detail.title
            if not listing.is_valid_price and detail.price_per_night > 0:
                update["price_per_night"] = detail.price_per_night
                update["currency"] = detail.currency or listing.currency
            if listing.rating is None and detail.rating is not None:
                update["rating"] = detail.rating
            if listing.review_count is None and detail.review_count is not None:
                update["review_count"] = detail.review_count
            if not listing.image_url and detail.image_url:
                update["image_url"] = detail.image_url

        summary = summaries.get(listing.url) if listing.url else None
        if summary:
            update["review_summary"] = summary

        merged.append(listing.model_copy(update=update) if update else listing)

    return merged


class SearchOrchestrator:
    """검색 엔진 오케스트레이터

    백엔드 구체 타입을 알지 못하며, backend_factory로 이름 → SearchBackend를 얻습니다.
    """

    def __init__(
        self,
        backend_factory: BackendFactory = create_backend,
        missing_config: MissingConfig = missing_backend_config,
        summarizer: Optional[ReviewSummarizer] = None,
        ranking_config: Optional[RankingConfig] = None,
        search_retry_attempts: Optional[int] = None,
        search_retry_delay_s: Optional[float] = None,
        summary_concurrency: Optional[int] = None,
        pipeline_timeout_s: Optional[float] = None,
        backend_run_timeout_s: Optional[float] = None,
        fallback_min_remaining_s: Optional[float] = None,
        target_time_ms: Optional[float] = None,
        enable_fallback: Optional[bool] = None,
        default_mode: Optional[str] = None,
    ):
        """
        Args:
            backend_factory: 백엔드 이름 → 새 SearchBackend 인스턴스
            missing_config: 백엔드 이름 → 누락된 설정 키 목록
            summarizer: 리뷰 요약기 (None이면 요약 생략)
            ranking_config: 랭킹 설정 (기본: settings)
            search_retry_attempts: 검색 총 시도 횟수 (기본 2)
            search_retry_delay_s: 검색 재시도 고정 간격
            summary_concurrency: 요약 동시성
            pipeline_timeout_s: 기본 파이프라인 데드라인 (초)
            backend_run_timeout_s: 백엔드 1회 실행(connect~enrich) 상한 (초)
            fallback_min_remaining_s: 폴백을 시작하기 위한 최소 잔여 예산 (초)
            target_time_ms: 평가 speed 기준 시간
            enable_fallback: 단일 모드 폴백 전역 스위치
            default_mode: 알 수 없는/빈 모드일 때 사용할 모드
        """
        if backend_factory is None:
            raise ValueError("backend_factory must not be None")

        self.backend_factory = backend_factory
        self.missing_config = missing_config
        self.summarizer = summarizer
        self.ranking_config = ranking_config or RankingConfig.from_settings()
        self.search_retry_attempts = search_retry_attempts or settings.search_retry_attempts
        self.search_retry_delay_s = (
            settings.search_retry_delay_s if search_retry_delay_s is None else search_retry_delay_s
        )
        self.summary_concurrency = summary_concurrency or settings.summary_concurrency
        self.pipeline_timeout_s = pipeline_timeout_s or settings.pipeline_timeout_s
        self.backend_run_timeout_s = backend_run_timeout_s or settings.backend_run_timeout_s
        self.fallback_min_remaining_s = (
            settings.fallback_min_remaining_s if fallback_min_remaining_s is None else fallback_min_remaining_s
        )
        self.target_time_ms = target_time_ms or settings.backend_timeout_ms
        self.enable_fallback = settings.enable_fallback if enable_fallback is None else enable_fallback
        self.default_mode = default_mode or settings.default_mode

    # ------------------------------------------------------------------
    # entry point
    # ------------------------------------------------------------------
    async def search(
        self,
        request: SearchRequest,
        mode: Optional[str] = None,
        on_status: Optional[StatusCallback] = None,
        allow_fallback: bool = True,
        model: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ) -> SearchOutcome:
        """통합 검색 실행

        Args:
            request: 정규화된 검색 요청
            mode: 실행 모드 문자열 (알 수 없으면 기본 모드)
            on_status: 진행 상태 콜백 (실패해도 흐름에 영향 없음)
            allow_fallback: 요청 단위 폴백 허용 여부
            model: 요약기로 그대로 전달되는 모델 id
            timeout_s: 파이프라인 데드라인 (기본: pipeline_timeout_s)

        Returns:
            SingleSearchOutcome | DualSearchOutcome

        Raises:
            ValueError: request가 SearchRequest가 아닌 경우
            ConfigError: 모드에 필요한 백엔드 설정 누락
            PipelineTimeoutError: 데드라인 초과 (진행 중 백엔드는 취소 후 disconnect)
        """
        if not isinstance(request, SearchRequest):
            raise ValueError(f"Invalid search request: {request!r}")

        timeout = timeout_s or self.pipeline_timeout_s
        budget = BudgetManager(BudgetConfig(total_budget=timeout, min_remaining=self.fallback_min_remaining_s))
        budget.start()
        logger.info(f"[Orchestrator] Search started: location='{request.location}', mode={mode or 'default'}")

        try:
            outcome = await asyncio.wait_for(
                self._execute(request, mode, on_status, allow_fallback, model, budget),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"[Orchestrator] Pipeline timeout after {budget.elapsed():.2f}s (limit {timeout}s)")
            raise PipelineTimeoutError(timeout) from e

        logger.info(f"[Orchestrator] Search completed: kind={outcome.kind.value}, elapsed={budget.elapsed():.2f}s")
        return outcome

    async def _execute(
        self,
        request: SearchRequest,
        mode: Optional[str],
        on_status: Optional[StatusCallback],
        allow_fallback: bool,
        model: Optional[str],
        budget: BudgetManager,
    ) -> SearchOutcome:
        resolved = resolve_mode(mode, self.default_mode)
        plan = ExecutionStrategy.plan(
            resolved,
            self.missing_config,
            allow_fallback=allow_fallback and self.enable_fallback,
        )
        logger.info(
            f"[Orchestrator] Plan: mode={plan.mode.value}, backends={list(plan.backends)}, fallback={plan.fallback}"
        )

        if plan.is_dual:
            return await self._run_dual(request, plan, on_status, model)
        return await self._run_single(request, plan, on_status, model, budget)

    # ------------------------------------------------------------------
    # modes
    # ------------------------------------------------------------------
    async def _run_single(
        self,
        request: SearchRequest,
        plan: ExecutionPlan,
        on_status: Optional[StatusCallback],
        model: Optional[str],
        budget: BudgetManager,
    ) -> SingleSearchOutcome:
        notes = list(plan.notes)
        backend = plan.primary
        result = await self.run_backend_search(backend, request, on_status, model)

        if plan.fallback and ExecutionStrategy.should_fallback(result) and budget.is_exhausted():
            logger.warning(
                f"[Orchestrator] {backend} failed, skipping fallback {plan.fallback} "
                f"(remaining budget {budget.remaining():.1f}s)"
            )
            notes.append(f"Skipped {backend_label(plan.fallback)} because too little time was left.")
        elif plan.fallback and ExecutionStrategy.should_fallback(result):
            logger.warning(f"[Orchestrator] {backend} failed ({result.errors}), trying fallback {plan.fallback}")
            await self._emit(
                on_status,
                f"{backend_label(backend)} could not complete the search, trying {backend_label(plan.fallback)}...",
            )
            alternate = await self.run_backend_search(plan.fallback, request, on_status, model)
            if ExecutionStrategy.should_adopt_fallback(alternate):
                notes.append(f"Fell back to {backend_label(plan.fallback)} after {backend_label(backend)} failed.")
                backend, result = plan.fallback, alternate
            else:
                logger.warning(f"[Orchestrator] Fallback {plan.fallback} also failed: {alternate.errors}")

        await self._emit(on_status, "Ranking results...")
        ranked = post_process_listings(result.listings, request, self.ranking_config, notes=notes)

        return SingleSearchOutcome(
            mode=plan.mode.value,
            backend=backend,
            execution=result,
            ranked=ranked,
        )

    async def _run_dual(
        self,
        request: SearchRequest,
        plan: ExecutionPlan,
        on_status: Optional[StatusCallback],
        model: Optional[str],
    ) -> DualSearchOutcome:
        first, second = plan.backends
        first_result, second_result = await asyncio.gather(
            self.run_backend_search(first, request, on_status, model),
            self.run_backend_search(second, request, on_status, model),
        )

        await self._emit(on_status, "Ranking results...")
        ranked = {
            first: post_process_listings(first_result.listings, request, self.ranking_config),
            second: post_process_listings(second_result.listings, request, self.ranking_config),
        }

        await self._emit(on_status, "Comparing backends...")
        evaluation = build_eval_result(
            request,
            {first: first_result, second: second_result},
            target_result_count=self.ranking_config.max_results,
            target_time_ms=self.target_time_ms,
        )

        return DualSearchOutcome(
            mode=plan.mode.value,
            ranked=ranked,
            evaluation=evaluation,
            notes=list(plan.notes),
        )

    # ------------------------------------------------------------------
    # single backend execution
    # ------------------------------------------------------------------
    async def run_backend_search(
        self,
        name: str,
        request: SearchRequest,
        on_status: Optional[StatusCallback] = None,
        model: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ) -> BackendExecutionResult:
        """백엔드 1회 실행: connect → search(retry) → enrich → disconnect

        예외를 던지지 않고 모든 실패를 결과의 errors에 기록합니다.
        (취소는 전파되며, 그 경우에도 disconnect는 시도됩니다)

        Args:
            timeout_s: connect~enrich 상한 (기본: backend_run_timeout_s).
                초과 시 그때까지 얻은 목록을 유지하고 timeout 오류를 기록합니다.
        """
        label = backend_label(name)
        limit = self.backend_run_timeout_s if timeout_s is None else timeout_s
        timer = BudgetManager()
        timer.start()

        errors: list[str] = []
        listings: list[Listing] = []

        try:
            backend = self.backend_factory(name)
        except Exception as e:
            logger.error(f"[Orchestrator] Failed to create backend {name}: {type(e).__name__}: {e}")
            return BackendExecutionResult.failure(name, f"create: {e}", timer.elapsed_ms())

        async def _stages() -> None:
            nonlocal listings
            await self._emit(on_status, f"Connecting to {label}...")
            connected = await self._connect(backend, name, errors)
            timer.checkpoint("connected")
            if not connected:
                return

            await self._emit(on_status, f"Searching with {label}...")
            found = await self._search(backend, name, request, errors)
            if not found:
                return
            listings = found
            timer.checkpoint("first_result")

            await self._emit(on_status, f"Enriching {len(found)} listings from {label}...")
            listings = await self._enrich(backend, name, found, errors, on_status, model)
            timer.checkpoint("enriched")

        try:
            await asyncio.wait_for(_stages(), timeout=limit)
        except asyncio.TimeoutError:
            logger.warning(
                f"[Orchestrator] {name} exceeded {limit:.1f}s, keeping {len(listings)} listings found so far"
            )
            errors.append(f"timeout: {label} did not finish within {limit:.1f}s")
        finally:
            await asyncio.shield(self._disconnect(backend, name, errors))

        total_ms = timer.elapsed_ms()
        first_ms = timer.checkpoint_ms("first_result")
        result = BackendExecutionResult(
            backend=name,
            listings=listings,
            time_to_first_result_ms=first_ms if first_ms is not None else total_ms,
            total_time_ms=total_ms,
            errors=errors,
        )
        logger.info(
            f"[Orchestrator] {name} finished: listings={len(listings)}, errors={len(errors)}, "
            f"total={total_ms:.0f}ms"
        )
        return result

    async def _connect(self, backend: SearchBackend, name: str, errors: list[str]) -> bool:
        try:
            await backend.connect()
            return True
        except StaySearchException as e:
            logger.warning(f"[Orchestrator] {name} connect failed: {e}")
            errors.append(f"connect: {e.message}")
        except Exception as e:
            logger.warning(f"[Orchestrator] {name} connect failed: {type(e).__name__}: {e}")
            errors.append(f"connect: {type(e).__name__}: {e}")
        return False

    async def _search(
        self,
        backend: SearchBackend,
        name: str,
        request: SearchRequest,
        errors: list[str],
    ) -> list[Listing]:
        try:
            return await retry_async(
                lambda: backend.search_airbnb(request),
                attempts=self.search_retry_attempts,
                delay_s=self.search_retry_delay_s,
                label=f"{name} search",
            )
        except Exception as e:
            error = SearchError(name, f"{type(e).__name__}: {e}")
            logger.warning(f"[Orchestrator] {error}")
            errors.append(f"search: {error.message}")
            return []

    async def _enrich(
        self,
        backend: SearchBackend,
        name: str,
        listings: list[Listing],
        errors: list[str],
        on_status: Optional[StatusCallback],
        model: Optional[str],
    ) -> list[Listing]:
        """상세 + 요약 병합. 실패는 비치명적이며 원본 목록을 유지"""
        urls = [listing.url for listing in listings if listing.url]
        if not urls:
            return listings

        try:
            details = await backend.get_multiple_listing_details(urls)
        except Exception as e:
            error = EnrichmentError(name, f"{type(e).__name__}: {e}")
            logger.warning(f"[Orchestrator] {error}")
            errors.append(f"enrich: {error.message}")
            return listings

        summaries: dict[str, str] = {}
        if self.summarizer is not None:
            candidates = [detail for detail in details if detail.reviews]
            if candidates:
                await self._emit(on_status, f"Summarizing reviews for {len(candidates)} listings...")
                summaries = await self._summarize(candidates, name, errors, model)

        return merge_enrichment(listings, details, summaries)

    async def _summarize(
        self,
        details: list[ListingDetail],
        name: str,
        errors: list[str],
        model: Optional[str],
    ) -> dict[str, str]:
        summarizer = self.summarizer
        failures = 0

        async def _summarize_one(detail: ListingDetail) -> Optional[str]:
            nonlocal failures
            try:
                return await summarizer.summarize(detail.reviews, detail.title, model=model)
            except Exception as e:
                failures += 1
                logger.warning(f"[Orchestrator] Summary failed for {detail.url}: {type(e).__name__}: {e}")
                return None

        results = await bounded_map(details, _summarize_one, concurrency=self.summary_concurrency)
        if failures:
            errors.append(f"summarize: {failures} of {len(details)} summaries failed")

        return {detail.url: summary for detail, summary in zip(details, results) if summary}

    async def _disconnect(self, backend: SearchBackend, name: str, errors: list[str]) -> None:
        try:
            await backend.disconnect()
        except Exception as e:
            logger.warning(f"[Orchestrator] {name} disconnect failed (ignored): {type(e).__name__}: {e}")
            errors.append(f"disconnect: {type(e).__name__}: {e}")

    async def _emit(self, on_status: Optional[StatusCallback], message: str) -> None:
        if on_status is None:
            return
        try:
            await on_status(message)
        except Exception as e:
            logger.warning(f"[Orchestrator] Status callback failed: {type(e).__name__}: {e}")
