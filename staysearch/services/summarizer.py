"""Review Summarizer - 리뷰 요약 collaborator

오케스트레이터는 ReviewSummarizer 프로토콜만 참조합니다.
LLMReviewSummarizer는 OpenAI 호환 /chat/completions 엔드포인트를 httpx로 호출합니다.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

import httpx

from staysearch.core.config import settings
from staysearch.core.exceptions import EnrichmentError
from staysearch.core.logging import logger, mask_secret
from staysearch.schemas.search_schema import Review


SUMMARY_TEMPERATURE = 0.5
SUMMARY_MAX_TOKENS = 150


class ReviewSummarizer(Protocol):
    async def summarize(
        self,
        reviews: Sequence[Review],
        listing_title: str,
        model: Optional[str] = None,
    ) -> Optional[str]:
        """리뷰 요약. 리뷰가 없으면 None"""
        ...


def build_summary_prompt(reviews: Sequence[Review], listing_title: str, max_reviews: int) -> str:
    lines = []
    for index, review in enumerate(reviews[:max_reviews], start=1):
        rating = f" ({review.rating:g}/5)" if review.rating is not None else ""
        lines.append(f"{index}. {review.text}{rating}")
    joined = "\n".join(lines)
    return (
        f'Summarize the following reviews for "{listing_title}" in 2-3 sentences. '
        "Focus on recurring strengths and weaknesses guests mention "
        "(cleanliness, location, host, value). Be neutral and concise.\n\n"
        f"Reviews:\n{joined}"
    )


class LLMReviewSummarizer:
    """OpenAI 호환 LLM 기반 리뷰 요약기"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_reviews: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key or settings.llm_api_key
        self.base_url = (base_url or settings.llm_base_url).rstrip("/")
        self.model = model or settings.llm_model
        self.timeout = timeout or settings.llm_timeout_s
        self.max_reviews = max_reviews or settings.summary_max_reviews
        self._http_client = http_client

    async def summarize(
        self,
        reviews: Sequence[Review],
        listing_title: str,
        model: Optional[str] = None,
    ) -> Optional[str]:
        """리뷰 요약 생성

        Args:
            reviews: 리뷰 목록 (최대 max_reviews개 사용)
            listing_title: 숙소 이름
            model: 호출자가 지정한 모델 id (없으면 설정값)

        Returns:
            Optional[str]: 요약 문장. 리뷰가 없으면 None

        Raises:
            EnrichmentError: LLM 호출 실패 또는 빈 응답
        """
        if not reviews:
            return None

        payload = {
            "model": model or self.model,
            "messages": [
                {"role": "system", "content": "You summarize guest reviews of vacation rentals."},
                {"role": "user", "content": build_summary_prompt(reviews, listing_title, self.max_reviews)},
            ],
            "temperature": SUMMARY_TEMPERATURE,
            "max_tokens": SUMMARY_MAX_TOKENS,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        try:
            if self._http_client is not None:
                response = await self._http_client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers)
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
        except httpx.HTTPError as e:
            raise EnrichmentError(listing_title, f"summary request failed: {type(e).__name__}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise EnrichmentError(listing_title, f"unexpected summary response: {type(e).__name__}") from e

        summary = (content or "").strip()
        if not summary:
            raise EnrichmentError(listing_title, "empty summary")

        logger.debug(f"[Summarizer] Summary generated: {len(summary)} chars, reviews={min(len(reviews), self.max_reviews)}")
        return summary


def create_summarizer() -> Optional[ReviewSummarizer]:
    """API 키가 설정된 경우에만 요약기 생성"""
    if not settings.llm_api_key:
        logger.info("[Summarizer] LLM_API_KEY not set, review summaries disabled")
        return None
    logger.info(f"[Summarizer] Review summaries enabled: model={settings.llm_model}, key={mask_secret(settings.llm_api_key)}")
    return LLMReviewSummarizer()
