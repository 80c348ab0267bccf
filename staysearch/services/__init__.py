"""서비스 계층 - export only."""

from .rate_limiter import RateLimitDecision, SlidingWindowRateLimiter
from .summarizer import LLMReviewSummarizer, ReviewSummarizer, create_summarizer

__all__ = [
    "RateLimitDecision",
    "SlidingWindowRateLimiter",
    "LLMReviewSummarizer",
    "ReviewSummarizer",
    "create_summarizer",
]
