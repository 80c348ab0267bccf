"""Airbnb HTML 파싱/검증 유틸.

네트워크/브라우저 제어와 분리된 순수 파싱 로직을 담습니다.
검색 결과 카드와 상세 페이지(DOM + meta + JSON-LD)를 Listing/ListingDetail로 변환합니다.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional
from urllib.parse import urlencode

from selectolax.parser import HTMLParser, Node

from staysearch.core.logging import logger
from staysearch.schemas.search_schema import Listing, ListingDetail, Review, SearchRequest


AIRBNB_BASE_URL = "https://www.airbnb.com"

_BLOCK_KEYWORDS = (
    "access denied",
    "captcha",
    "are you a robot",
    "verify you are human",
    "unusual traffic",
    "just a moment",
)

_CURRENCY_SYMBOLS = {
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "₩": "KRW",
    "₹": "INR",
}

_PRICE_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")
_RATING_RE = re.compile(r"\d+(?:\.\d+)?")
_REVIEW_COUNT_RE = re.compile(r"(\d[\d,]*)\s*reviews?", re.IGNORECASE)
_PAREN_COUNT_RE = re.compile(r"\((\d[\d,]*)\)")


def build_search_url(request: SearchRequest) -> str:
    """검색 URL 생성 (위치/날짜/인원/가격 필터)"""
    params: list[tuple[str, str]] = [
        ("query", request.location),
        ("checkin", request.check_in.isoformat()),
        ("checkout", request.check_out.isoformat()),
        ("adults", str(request.guests or 2)),
    ]
    if request.budget_min:
        params.append(("price_min", str(int(request.budget_min))))
    if request.budget_max:
        params.append(("price_max", str(int(request.budget_max))))
    return f"{AIRBNB_BASE_URL}/s/homes?{urlencode(params)}"


def normalize_url(href: Optional[str]) -> str:
    """상대 경로를 절대 URL로, 쿼리스트링 제거 (중복 판정 안정화)"""
    if not href:
        return ""
    href = href.strip()
    if not href.startswith(("http://", "https://")):
        href = f"{AIRBNB_BASE_URL}{'' if href.startswith('/') else '/'}{href}"
    return href.split("?", 1)[0]


def parse_price(text: Optional[str]) -> float:
    """가격 문자열에서 첫 숫자 추출. 실패 시 0 (invalid)"""
    if not text:
        return 0.0
    match = _PRICE_RE.search(str(text))
    if not match:
        return 0.0
    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return 0.0


def parse_rating(text: Optional[str]) -> Optional[float]:
    if not text:
        return None
    match = _RATING_RE.search(str(text))
    if not match:
        return None
    value = float(match.group(0))
    # "New" 등 비정상 값은 버림
    if value < 0 or value > 5:
        return None
    return value


def parse_review_count(text: Optional[str]) -> Optional[int]:
    if not text:
        return None
    text = str(text)
    match = _REVIEW_COUNT_RE.search(text) or _PAREN_COUNT_RE.search(text)
    if match:
        return int(match.group(1).replace(",", ""))
    plain = text.strip().replace(",", "")
    # 숫자만 있는 경우 (JSON-LD reviewCount)
    return int(plain) if plain.isdigit() else None


def detect_currency(text: Optional[str], default: str = "USD") -> str:
    if text:
        for symbol, code in _CURRENCY_SYMBOLS.items():
            if symbol in text:
                return code
    return default


def is_blocked_html(html: str) -> bool:
    if not html:
        return True
    lowered = html.lower()
    return any(k in lowered for k in _BLOCK_KEYWORDS)


def _text(node: Optional[Node]) -> str:
    if node is None:
        return ""
    return " ".join(node.text(separator=" ", strip=True).split())


def _first_text(root: Node | HTMLParser, selectors: tuple[str, ...]) -> str:
    for selector in selectors:
        value = _text(root.css_first(selector))
        if value:
            return value
    return ""


def _attr(node: Optional[Node], name: str) -> str:
    if node is None:
        return ""
    return (node.attributes.get(name) or "").strip()


def parse_search_results(html: str, currency: str = "USD", limit: int = 10) -> list[Listing]:
    """검색 결과 페이지 → Listing 목록

    제목이 없는 카드는 버리고, 가격 파싱 실패는 price_per_night=0으로 남깁니다.
    """
    tree = HTMLParser(html or "")
    cards = tree.css('[data-testid="card-container"]')
    listings: list[Listing] = []

    for card in cards:
        if len(listings) >= limit:
            break

        title = _first_text(card, ('[data-testid="listing-card-title"]', '[id^="title_"]'))
        if not title:
            continue

        price_text = _first_text(card, ('[data-testid="price-availability-row"]', 'span[class*="_1y74zjx"]'))
        link = card.css_first('a[href*="/rooms/"]')
        rating_node = card.css_first('[aria-label*="rating"]') or card.css_first('span[role="img"]')
        rating_text = _attr(rating_node, "aria-label") or _text(rating_node)
        image = card.css_first('img[src*="muscache"]') or card.css_first("img")

        listings.append(
            Listing(
                title=title,
                price_per_night=parse_price(price_text),
                currency=detect_currency(price_text, currency),
                rating=parse_rating(rating_text),
                review_count=parse_review_count(rating_text),
                review_summary=None,
                url=normalize_url(_attr(link, "href")),
                image_url=_attr(image, "src") or None,
            )
        )

    logger.debug(f"[Parsing] Search results parsed: cards={len(cards)}, listings={len(listings)}")
    return listings


def _load_structured_data(tree: HTMLParser) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    for script in tree.css('script[type="application/ld+json"]'):
        raw = script.text(strip=False)
        if not raw:
            continue
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError):
            continue
        if isinstance(parsed, list):
            items.extend(item for item in parsed if isinstance(item, dict))
        elif isinstance(parsed, dict):
            items.append(parsed)
    return items


def _meta(tree: HTMLParser, name: str) -> str:
    node = tree.css_first(f'meta[property="{name}"]') or tree.css_first(f'meta[name="{name}"]')
    return _attr(node, "content")


def _structured_reviews(items: list[dict[str, Any]]) -> list[Review]:
    reviews: list[Review] = []
    for item in items:
        raw_reviews = item.get("review")
        if isinstance(raw_reviews, dict):
            raw_reviews = [raw_reviews]
        if not isinstance(raw_reviews, list):
            continue
        for entry in raw_reviews:
            if not isinstance(entry, dict):
                continue
            text = entry.get("reviewBody") or entry.get("description") or ""
            if not isinstance(text, str) or not text.strip():
                continue
            author = entry.get("author")
            if isinstance(author, dict):
                author = author.get("name")
            review_rating = entry.get("reviewRating")
            rating = None
            if isinstance(review_rating, dict) and review_rating.get("ratingValue") is not None:
                rating = parse_rating(str(review_rating.get("ratingValue")))
            reviews.append(
                Review(
                    text=" ".join(text.split()),
                    author=author if isinstance(author, str) and author else None,
                    date=entry.get("datePublished") if isinstance(entry.get("datePublished"), str) else None,
                    rating=rating,
                )
            )
    return reviews


def _dom_reviews(tree: HTMLParser) -> list[Review]:
    reviews: list[Review] = []
    for node in tree.css('[data-review-id], [data-testid="review-card"]'):
        text = _first_text(node, ('span[class*="review"]', "p", "span")) or _text(node)
        if not text:
            continue
        author = _first_text(node, ("h3", '[data-testid="review-author"]')) or None
        date = _first_text(node, ('[data-testid="review-date"]', "time")) or None
        reviews.append(Review(text=text, author=author, date=date))
    return reviews


def parse_listing_detail(html: str, url: str, currency: str = "USD") -> ListingDetail:
    """상세 페이지 → ListingDetail (DOM 우선, meta/JSON-LD 보조)"""
    tree = HTMLParser(html or "")
    structured = _load_structured_data(tree)

    def _structured(key: str) -> Any:
        for item in structured:
            value = item.get(key)
            if value:
                return value
        return None

    title = _text(tree.css_first("h1")) or (_structured("name") or "") or _meta(tree, "og:title")

    price_text = _first_text(
        tree,
        (
            '[data-testid="book-it-price"]',
            '[data-testid="price"]',
            '[data-testid="book-it-default-price"]',
            '[data-testid="price-and-discounted-price"]',
        ),
    )
    offers = _structured("offers")
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    structured_price = str(offers.get("price")) if isinstance(offers, dict) and offers.get("price") is not None else ""
    structured_currency = offers.get("priceCurrency") if isinstance(offers, dict) else None
    price_source = price_text or _meta(tree, "og:price:amount") or structured_price

    aggregate = _structured("aggregateRating") or {}
    rating = parse_rating(_first_text(tree, ('[data-testid="review-score"]', '[data-testid="listing-rating"]')))
    if rating is None and isinstance(aggregate, dict) and aggregate.get("ratingValue") is not None:
        rating = parse_rating(str(aggregate.get("ratingValue")))
    review_count = parse_review_count(_first_text(tree, ('[data-testid="review-count"]', 'a[href*="#reviews"]')))
    if review_count is None and isinstance(aggregate, dict) and aggregate.get("reviewCount") is not None:
        review_count = parse_review_count(str(aggregate.get("reviewCount")))

    image = _structured("image")
    if isinstance(image, list):
        image = image[0] if image else None
    image_url = image if isinstance(image, str) else (_meta(tree, "og:image") or None)

    description = (
        _text(tree.css_first('[data-testid="listing-description"]'))
        or (_structured("description") or "")
        or _meta(tree, "og:description")
    )
    amenities = [_text(node) for node in tree.css('[data-testid="amenity-row"]') if _text(node)]

    reviews = _structured_reviews(structured) or _dom_reviews(tree)

    return ListingDetail(
        title=title,
        price_per_night=parse_price(price_source),
        currency=structured_currency if isinstance(structured_currency, str) and structured_currency else detect_currency(price_text, currency),
        rating=rating,
        review_count=review_count,
        review_summary=None,
        url=normalize_url(url),
        image_url=image_url,
        reviews=reviews,
        description=description or None,
        amenities=amenities,
    )
