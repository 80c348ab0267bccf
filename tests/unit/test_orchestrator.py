"""SearchOrchestrator 테스트

원칙:
- 외부 호출 없음 (브라우저/HTTP 금지)
- Fake 백엔드 주입으로 모드/폴백/평가/데드라인 의미 검증
"""

from __future__ import annotations

from typing import Optional

import pytest

from staysearch.core.exceptions import BackendConnectionError, ConfigError, PipelineTimeoutError
from staysearch.engine.orchestrator import SearchOrchestrator, merge_enrichment
from staysearch.engine.ranking import RankingConfig
from staysearch.engine.result import DualSearchOutcome, SingleSearchOutcome
from staysearch.schemas.search_schema import Listing
from tests.fixtures import (
    BackendRegistry,
    FakeBackend,
    FakeSummarizer,
    make_detail,
    make_listing,
    make_listings,
)


def build_orchestrator(
    registry: BackendRegistry,
    summarizer: Optional[FakeSummarizer] = None,
    **overrides,
) -> SearchOrchestrator:
    params = dict(
        backend_factory=registry.create,
        missing_config=registry.missing_config,
        summarizer=summarizer,
        ranking_config=RankingConfig(),
        search_retry_attempts=2,
        search_retry_delay_s=0,
        summary_concurrency=3,
        pipeline_timeout_s=5,
        fallback_min_remaining_s=0,
        target_time_ms=30000,
        enable_fallback=True,
        default_mode="playwright",
    )
    params.update(overrides)
    return SearchOrchestrator(**params)


class StatusRecorder:
    def __init__(self):
        self.messages: list[str] = []

    async def __call__(self, message: str) -> None:
        self.messages.append(message)


# ============================================================================
# 단일 모드
# ============================================================================

@pytest.mark.asyncio
async def test_single_mode_success(search_request):
    playwright = FakeBackend("playwright", listings=make_listings([100, 200, 300]))
    registry = BackendRegistry({"playwright": playwright})
    status = StatusRecorder()

    outcome = await build_orchestrator(registry).search(search_request, mode="playwright", on_status=status)

    assert isinstance(outcome, SingleSearchOutcome)
    assert outcome.backend == "playwright"
    assert [l.price_per_night for l in outcome.ranked.listings] == [300, 200, 100]
    assert outcome.execution.errors == []
    assert playwright.connect_calls == 1
    assert playwright.disconnect_calls == 1
    assert status.messages[0] == "Connecting to Playwright..."
    assert "Searching with Playwright..." in status.messages
    assert status.messages[-1] == "Ranking results..."


@pytest.mark.asyncio
async def test_search_retried_once_on_transient_failure(search_request):
    playwright = FakeBackend("playwright", listings=make_listings([100]), search_failures=1)
    registry = BackendRegistry({"playwright": playwright})

    outcome = await build_orchestrator(registry).search(search_request, mode="playwright")

    assert playwright.search_calls == 2
    assert len(outcome.ranked.listings) == 1
    assert outcome.execution.errors == []


@pytest.mark.asyncio
async def test_fallback_adopted_when_primary_fails(search_request):
    playwright = FakeBackend("playwright", search_error=RuntimeError("selector missing"))
    browserbase = FakeBackend("browserbase", listings=make_listings([120, 150]))
    registry = BackendRegistry({"playwright": playwright, "browserbase": browserbase})

    outcome = await build_orchestrator(registry).search(search_request, mode="playwright")

    assert outcome.backend == "browserbase"
    assert playwright.search_calls == 2
    assert playwright.disconnect_calls == 1
    assert browserbase.search_calls == 1
    assert "Fell back to Browserbase after Playwright failed." in outcome.notes
    assert registry.created == ["playwright", "browserbase"]


@pytest.mark.asyncio
async def test_fallback_on_connect_failure(search_request):
    playwright = FakeBackend("playwright", connect_error=BackendConnectionError("playwright", "no browser"))
    browserbase = FakeBackend("browserbase", listings=make_listings([120]))
    registry = BackendRegistry({"playwright": playwright, "browserbase": browserbase})

    outcome = await build_orchestrator(registry).search(search_request, mode="playwright")

    assert outcome.backend == "browserbase"
    assert playwright.search_calls == 0


@pytest.mark.asyncio
async def test_failed_fallback_keeps_primary_result(search_request):
    playwright = FakeBackend("playwright", search_error=RuntimeError("blocked"))
    browserbase = FakeBackend("browserbase", search_error=RuntimeError("quota"))
    registry = BackendRegistry({"playwright": playwright, "browserbase": browserbase})

    outcome = await build_orchestrator(registry).search(search_request, mode="playwright")

    assert outcome.backend == "playwright"
    assert outcome.ranked.listings == []
    assert any(error.startswith("search:") for error in outcome.execution.errors)
    assert outcome.notes == []


@pytest.mark.asyncio
async def test_empty_result_without_errors_does_not_fall_back(search_request):
    playwright = FakeBackend("playwright", listings=[])
    browserbase = FakeBackend("browserbase", listings=make_listings([100]))
    registry = BackendRegistry({"playwright": playwright, "browserbase": browserbase})

    outcome = await build_orchestrator(registry).search(search_request, mode="playwright")

    assert outcome.backend == "playwright"
    assert registry.created == ["playwright"]


@pytest.mark.asyncio
async def test_fallback_disabled_per_request(search_request):
    playwright = FakeBackend("playwright", search_error=RuntimeError("down"))
    browserbase = FakeBackend("browserbase", listings=make_listings([100]))
    registry = BackendRegistry({"playwright": playwright, "browserbase": browserbase})

    outcome = await build_orchestrator(registry).search(search_request, mode="playwright", allow_fallback=False)

    assert outcome.backend == "playwright"
    assert registry.created == ["playwright"]


@pytest.mark.asyncio
async def test_fallback_skipped_when_target_not_configured(search_request):
    playwright = FakeBackend("playwright", search_error=RuntimeError("down"))
    registry = BackendRegistry({"playwright": playwright}, missing={"browserbase": ["BROWSERBASE_API_KEY"]})

    outcome = await build_orchestrator(registry).search(search_request, mode="playwright")

    assert outcome.backend == "playwright"
    assert registry.created == ["playwright"]


@pytest.mark.asyncio
async def test_missing_config_raises_before_any_backend(search_request):
    registry = BackendRegistry({}, missing={"browserbase": ["BROWSERBASE_API_KEY", "BROWSERBASE_PROJECT_ID"]})

    with pytest.raises(ConfigError) as exc_info:
        await build_orchestrator(registry).search(search_request, mode="browserbase")

    assert exc_info.value.error_code == "CONFIG_ERROR"
    assert registry.created == []


@pytest.mark.asyncio
async def test_unknown_mode_uses_default(search_request):
    playwright = FakeBackend("playwright", listings=make_listings([100]))
    registry = BackendRegistry({"playwright": playwright})

    outcome = await build_orchestrator(registry).search(search_request, mode="teleport")

    assert outcome.mode == "playwright"
    assert outcome.backend == "playwright"


@pytest.mark.asyncio
async def test_backend_creation_failure_recorded(search_request):
    def broken_factory(name: str):
        raise RuntimeError("playwright not installed")

    registry = BackendRegistry({})
    orchestrator = build_orchestrator(registry, backend_factory=broken_factory, enable_fallback=False)

    outcome = await orchestrator.search(search_request, mode="playwright")

    assert outcome.ranked.listings == []
    assert outcome.execution.errors[0].startswith("create:")


@pytest.mark.asyncio
async def test_invalid_request_rejected():
    registry = BackendRegistry({})

    with pytest.raises(ValueError):
        await build_orchestrator(registry).search({"location": "Tokyo"})


# ============================================================================
# 듀얼 모드
# ============================================================================

@pytest.mark.asyncio
async def test_dual_mode_runs_both_and_compares(search_request):
    playwright = FakeBackend("playwright", listings=make_listings([100, 200]))
    browserbase = FakeBackend("browserbase", listings=make_listings([150]))
    registry = BackendRegistry({"playwright": playwright, "browserbase": browserbase})
    status = StatusRecorder()

    outcome = await build_orchestrator(registry).search(search_request, mode="dual", on_status=status)

    assert isinstance(outcome, DualSearchOutcome)
    assert set(outcome.ranked) == {"playwright", "browserbase"}
    assert playwright.disconnect_calls == 1
    assert browserbase.disconnect_calls == 1
    assert "Comparing backends..." in status.messages
    payload = outcome.to_payload()
    assert payload["kind"] == "dual"
    assert payload["evaluation"]["comparison"]["winner"] == outcome.winner


@pytest.mark.asyncio
async def test_dual_single_producer_wins(search_request):
    """A만 결과를 내면 composite 점수와 무관하게 A 승리."""
    playwright = FakeBackend("playwright", listings=make_listings([100 + i for i in range(8)]))
    browserbase = FakeBackend("browserbase", search_error=RuntimeError("blocked"))
    registry = BackendRegistry({"playwright": playwright, "browserbase": browserbase})

    outcome = await build_orchestrator(registry).search(search_request, mode="dual")

    assert outcome.winner == "playwright"
    assert outcome.evaluation.results["browserbase"].errors


@pytest.mark.asyncio
async def test_dual_does_not_fall_back(search_request):
    playwright = FakeBackend("playwright", search_error=RuntimeError("down"))
    browserbase = FakeBackend("browserbase", search_error=RuntimeError("down"))
    registry = BackendRegistry({"playwright": playwright, "browserbase": browserbase})

    outcome = await build_orchestrator(registry).search(search_request, mode="dual")

    assert sorted(registry.created) == ["browserbase", "playwright"]
    assert outcome.winner == "tie"


@pytest.mark.asyncio
async def test_dual_degrades_when_one_backend_unconfigured(search_request):
    playwright = FakeBackend("playwright", listings=make_listings([100]))
    registry = BackendRegistry({"playwright": playwright}, missing={"browserbase": ["BROWSERBASE_API_KEY"]})

    outcome = await build_orchestrator(registry).search(search_request, mode="dual")

    assert isinstance(outcome, SingleSearchOutcome)
    assert outcome.mode == "dual"
    assert outcome.backend == "playwright"
    assert outcome.notes[0].startswith("Comparison mode unavailable")


@pytest.mark.asyncio
async def test_dual_with_no_configured_backend_raises(search_request):
    registry = BackendRegistry(
        {},
        missing={"playwright": ["BROWSER"], "browserbase": ["BROWSERBASE_API_KEY"]},
    )

    with pytest.raises(ConfigError):
        await build_orchestrator(registry).search(search_request, mode="dual")


# ============================================================================
# 데드라인 / 취소
# ============================================================================

@pytest.mark.asyncio
async def test_pipeline_timeout_disconnects_backend(search_request):
    playwright = FakeBackend("playwright", listings=make_listings([100]), search_delay=1.0)
    registry = BackendRegistry({"playwright": playwright})

    with pytest.raises(PipelineTimeoutError) as exc_info:
        await build_orchestrator(registry).search(search_request, mode="playwright", timeout_s=0.05)

    assert exc_info.value.retryable is True
    assert playwright.connect_calls == 1
    assert playwright.disconnect_calls == 1


@pytest.mark.asyncio
async def test_pipeline_timeout_in_dual_disconnects_both(search_request):
    playwright = FakeBackend("playwright", listings=make_listings([100]), search_delay=1.0)
    browserbase = FakeBackend("browserbase", listings=make_listings([100]), search_delay=1.0)
    registry = BackendRegistry({"playwright": playwright, "browserbase": browserbase})

    with pytest.raises(PipelineTimeoutError):
        await build_orchestrator(registry).search(search_request, mode="dual", timeout_s=0.05)

    assert playwright.disconnect_calls == 1
    assert browserbase.disconnect_calls == 1



@pytest.mark.asyncio
async def test_hung_primary_times_out_and_falls_back(search_request):
    """백엔드 1회 실행 상한 초과 시 timeout 오류 기록 후 폴백."""
    playwright = FakeBackend("playwright", listings=make_listings([100]), search_delay=1.0)
    browserbase = FakeBackend("browserbase", listings=make_listings([120, 150]))
    registry = BackendRegistry({"playwright": playwright, "browserbase": browserbase})
    orchestrator = build_orchestrator(registry, backend_run_timeout_s=0.05)

    outcome = await orchestrator.search(search_request, mode="playwright")

    assert outcome.backend == "browserbase"
    assert playwright.disconnect_calls == 1
    assert browserbase.search_calls == 1
    assert "Fell back to Browserbase after Playwright failed." in outcome.notes


@pytest.mark.asyncio
async def test_backend_timeout_keeps_listings_found_before_enrichment(search_request):
    playwright = FakeBackend("playwright", listings=make_listings([100, 200]), details_delay=1.0)
    registry = BackendRegistry({"playwright": playwright})

    result = await build_orchestrator(registry).run_backend_search(
        "playwright", search_request, timeout_s=0.05
    )

    assert [l.price_per_night for l in result.listings] == [100, 200]
    assert any(error.startswith("timeout:") for error in result.errors)
    assert result.failed is False
    assert result.time_to_first_result_ms <= result.total_time_ms
    assert playwright.disconnect_calls == 1


@pytest.mark.asyncio
async def test_fallback_skipped_when_pipeline_budget_is_low(search_request):
    """남은 예산이 최소 여유 시간보다 작으면 폴백을 시작하지 않음."""
    playwright = FakeBackend("playwright", search_error=RuntimeError("blocked"))
    browserbase = FakeBackend("browserbase", listings=make_listings([120]))
    registry = BackendRegistry({"playwright": playwright, "browserbase": browserbase})
    orchestrator = build_orchestrator(registry, pipeline_timeout_s=5, fallback_min_remaining_s=10)

    outcome = await orchestrator.search(search_request, mode="playwright")

    assert outcome.backend == "playwright"
    assert browserbase.connect_calls == 0
    assert "Skipped Browserbase because too little time was left." in outcome.notes
    assert registry.created == ["playwright"]

# ============================================================================
# Enrichment
# ============================================================================

@pytest.mark.asyncio
async def test_enrichment_merges_details_and_summaries(search_request):
    listing = make_listing(100, 1, rating=None, image_url=None)
    detail = make_detail(
        listing.url,
        review_texts=["Clean", "Quiet"],
        rating=4.8,
        image_url="https://img/1.jpg",
        title="Different title",
    )
    playwright = FakeBackend("playwright", listings=[listing], details={listing.url: detail})
    registry = BackendRegistry({"playwright": playwright})
    summarizer = FakeSummarizer()
    status = StatusRecorder()

    outcome = await build_orchestrator(registry, summarizer=summarizer).search(
        search_request, mode="playwright", on_status=status, model="gpt-test"
    )

    enriched = outcome.ranked.listings[0]
    assert enriched.title == "Stay 1"
    assert enriched.rating == 4.8
    assert enriched.image_url == "https://img/1.jpg"
    assert enriched.review_summary == "2 guests liked Different title"
    assert summarizer.models == ["gpt-test"]
    assert "Summarizing reviews for 1 listings..." in status.messages


@pytest.mark.asyncio
async def test_enrichment_failure_is_not_fatal(search_request):
    playwright = FakeBackend("playwright", listings=make_listings([100]), details_error=RuntimeError("detail page timeout"))
    registry = BackendRegistry({"playwright": playwright})

    outcome = await build_orchestrator(registry, summarizer=FakeSummarizer()).search(search_request, mode="playwright")

    assert len(outcome.ranked.listings) == 1
    assert any(error.startswith("enrich:") for error in outcome.execution.errors)


@pytest.mark.asyncio
async def test_summary_failure_is_not_fatal(search_request):
    listing = make_listing(100, 1)
    playwright = FakeBackend("playwright", listings=[listing], details={listing.url: make_detail(listing.url, ["ok"])})
    registry = BackendRegistry({"playwright": playwright})

    outcome = await build_orchestrator(registry, summarizer=FakeSummarizer(error=RuntimeError("llm down"))).search(
        search_request, mode="playwright"
    )

    assert outcome.ranked.listings[0].review_summary is None
    assert "summarize: 1 of 1 summaries failed" in outcome.execution.errors


@pytest.mark.asyncio
async def test_details_without_reviews_skip_summarizer(search_request):
    listing = make_listing(100, 1)
    playwright = FakeBackend("playwright", listings=[listing], details={listing.url: make_detail(listing.url)})
    registry = BackendRegistry({"playwright": playwright})
    summarizer = FakeSummarizer()

    await build_orchestrator(registry, summarizer=summarizer).search(search_request, mode="playwright")

    assert summarizer.calls == 0


@pytest.mark.asyncio
async def test_failing_status_callback_is_ignored(search_request):
    playwright = FakeBackend("playwright", listings=make_listings([100]))
    registry = BackendRegistry({"playwright": playwright})

    async def broken(message: str) -> None:
        raise RuntimeError("client gone")

    outcome = await build_orchestrator(registry).search(search_request, mode="playwright", on_status=broken)

    assert len(outcome.ranked.listings) == 1


def test_merge_enrichment_fills_only_missing_fields():
    original = Listing(title="Loft", price_per_night=0, url="https://x/1", rating=4.0)
    untouched = Listing(title="Other", price_per_night=90, url="https://x/2")
    detail = make_detail("https://x/1", title="Ignored", price_per_night=130, currency="EUR", rating=3.0, review_count=7)

    merged = merge_enrichment([original, untouched], [detail], {"https://x/1": "Nice"})

    assert merged[0].title == "Loft"
    assert merged[0].price_per_night == 130
    assert merged[0].currency == "EUR"
    assert merged[0].rating == 4.0
    assert merged[0].review_count == 7
    assert merged[0].review_summary == "Nice"
    assert merged[1] is untouched
