"""News normalisation — sentiment labels, tags and slugs for upstream news items."""

import re
from datetime import datetime, timezone
from typing import Optional, Sequence

BULLISH_TERMS: tuple[str, ...] = (
    "bull", "surge", "soar", "rise", "gain", "rally", "jump", "high", "up",
    "positive", "growth", "optimistic", "breakthrough",
)
BEARISH_TERMS: tuple[str, ...] = (
    "bear", "drop", "fall", "crash", "plunge", "down", "low", "loss", "sell",
    "negative", "decline", "pessimistic", "concern",
)

_COMMON_TAGS = ("cryptocurrency", "crypto", "bitcoin", "blockchain", "trading")
_KEYWORD_RE = re.compile(
    r"\b(bitcoin|btc|ethereum|eth|crypto|blockchain|defi|nft|altcoin|trading"
    r"|market|price|analysis|regulation)\w*\b",
    re.IGNORECASE,
)
_MAX_TAGS = 10
_MAX_SLUG = 100
_DESCRIPTION_CHARS = 150


def classify_sentiment(text: str) -> str:
    """``bullish``/``bearish``/``neutral`` by counting which term list matches more.

    Terms match as substrings of the lower-cased text, each term counted once.
    """
    lowered = text.lower()
    bullish = sum(1 for term in BULLISH_TERMS if term in lowered)
    bearish = sum(1 for term in BEARISH_TERMS if term in lowered)
    if bullish > bearish:
        return "bullish"
    if bearish > bullish:
        return "bearish"
    return "neutral"


def generate_tags(title: str, currencies: Sequence[str]) -> list[str]:
    """Common tags, the currencies, then keywords found in *title*; max 10, no duplicates."""
    candidates = [
        *_COMMON_TAGS,
        *(c.lower() for c in currencies),
        *(m.group(0).lower() for m in _KEYWORD_RE.finditer(title)),
    ]
    return list(dict.fromkeys(candidates))[:_MAX_TAGS]


def generate_slug(title: str) -> str:
    """URL slug: lower-case, punctuation dropped, whitespace → hyphens, max 100 chars."""
    slug = re.sub(r"[^\w\s-]", "", title.lower())
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug[:_MAX_SLUG]


def _iso(ts: Optional[int]) -> str:
    if isinstance(ts, (int, float)) and ts > 0:
        when = datetime.fromtimestamp(ts, tz=timezone.utc)
    else:
        when = datetime.now(timezone.utc)
    return when.strftime("%Y-%m-%dT%H:%M:%S.000Z")


def normalize_cryptocompare_item(item: dict, index: int = 0) -> dict:
    """Dashboard article from a CryptoCompare ``v2/news`` item."""
    title = item.get("title", "")
    body = item.get("body") or ""
    categories = item.get("categories")
    currencies = categories.split("|") if categories else ["BTC"]
    return {
        "id": str(item.get("id") or f"news-{index}"),
        "title": title,
        "description": body[:_DESCRIPTION_CHARS] + "..." if body else title,
        "url": item.get("url", ""),
        "source": item.get("source", ""),
        "imageUrl": item.get("imageurl"),
        "publishedAt": _iso(item.get("published_on")),
        "category": classify_sentiment(f"{title} {body}"),
        "tags": generate_tags(title, currencies),
        "slug": generate_slug(title),
    }


def normalize_coingecko_item(item: dict, index: int = 0) -> dict:
    """Dashboard article from a CoinGecko ``news`` item.  Sentiment uses the title only."""
    title = item.get("title", "")
    description = item.get("description") or title
    return {
        "id": str(item.get("id") or f"news-{index}"),
        "title": title,
        "description": description[:_DESCRIPTION_CHARS],
        "url": item.get("url", ""),
        "source": item.get("news_site") or item.get("author") or "CoinGecko",
        "imageUrl": item.get("thumb_2x"),
        "publishedAt": _iso(item.get("updated_at") or item.get("created_at")),
        "category": classify_sentiment(title),
        "tags": generate_tags(title, ["BTC", "cryptocurrency"]),
        "slug": generate_slug(title),
    }


def normalize_news(source: str, items: Sequence[dict]) -> list[dict]:
    """Normalise a raw news payload according to the provider it came from."""
    normalize = normalize_cryptocompare_item if source == "cryptocompare" else normalize_coingecko_item
    return [normalize(item, i) for i, item in enumerate(items)]
