"""Search PA-API for several keywords and merge the hits by ASIN.

Keywords are searched one after another in the caller's order. The first
failing keyword aborts the whole search; no partial list is returned.
"""
import logging
import math
import threading
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional
from urllib.parse import urlencode

import amazon_paapi
from paapi_errors import SearchCancelled

logger = logging.getLogger(__name__)

MAX_KEYWORDS = 5
MAX_RESULTS = 12


@dataclass
class CatalogItem:
    asin: str
    title: str
    url: str
    image_url: Optional[str] = None
    price: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    matched_keywords: List[str] = field(default_factory=list)

    def add_keywords(self, keywords):
        for kw in keywords:
            if kw not in self.matched_keywords:
                self.matched_keywords.append(kw)

    def to_dict(self):
        data = {
            'asin': self.asin,
            'title': self.title,
            'url': self.url,
            'imageUrl': self.image_url,
            'price': self.price,
            'amount': self.amount,
            'currency': self.currency,
            'rating': self.rating,
            'reviewCount': self.review_count,
        }
        clean = {k: v for k, v in data.items() if v is not None}
        clean['matchedKeywords'] = list(self.matched_keywords)
        return clean


class CancelToken:
    """Caller-held flag checked between keyword calls."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, details=None):
        if self._event.is_set():
            raise SearchCancelled(details)


def normalize_keywords(keywords: Optional[Iterable]) -> List[str]:
    """Strings only, trimmed, non-empty, at most MAX_KEYWORDS."""
    out = []
    for kw in keywords or []:
        if not isinstance(kw, str):
            continue
        kw = kw.strip()
        if kw:
            out.append(kw)
    return out[:MAX_KEYWORDS]


def _dig(data, *path):
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def extract_items(response) -> list:
    """Locate the item array: SearchResult.Items first, then ItemsResult.Items."""
    for path in (('SearchResult', 'Items'), ('ItemsResult', 'Items')):
        items = _dig(response, *path)
        if isinstance(items, list):
            return items
    return []


def _finite(value):
    # NaN and Infinity are valid tokens for the JSON decoder but not for JSON output
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        return value
    return None


def _display_value(value):
    # CustomerReviews fields come either bare or wrapped as {"DisplayValue": ...}
    if isinstance(value, dict):
        value = value.get('DisplayValue')
    if isinstance(value, str):
        try:
            value = float(value) if '.' in value else int(value)
        except ValueError:
            return None
    return _finite(value)


def parse_item(raw, keyword=None) -> Optional[CatalogItem]:
    """Build a CatalogItem from one raw PA-API item, or None if ASIN/DetailPageURL is missing."""
    if not isinstance(raw, dict):
        return None
    asin = raw.get('ASIN')
    url = raw.get('DetailPageURL')
    if not asin or not url:
        return None

    listings = _dig(raw, 'Offers', 'Listings')
    listing = listings[0] if isinstance(listings, list) and listings else {}
    price = _dig(listing, 'Price') or {}

    review_count = _display_value(_dig(raw, 'CustomerReviews', 'Count'))
    return CatalogItem(
        asin=str(asin),
        title=_dig(raw, 'ItemInfo', 'Title', 'DisplayValue') or '',
        url=str(url),
        image_url=_dig(raw, 'Images', 'Primary', 'Medium', 'URL'),
        price=_dig(price, 'DisplayAmount'),
        amount=_finite(_dig(price, 'Amount')),
        currency=_dig(price, 'Currency'),
        rating=_display_value(_dig(raw, 'CustomerReviews', 'StarRating')),
        review_count=int(review_count) if review_count is not None else None,
        matched_keywords=[keyword] if keyword else [],
    )


def parse_response(response, keyword=None) -> List[CatalogItem]:
    items = []
    for raw in extract_items(response):
        item = parse_item(raw, keyword)
        if item is None:
            logger.debug('Skipping item without ASIN/DetailPageURL for %r', keyword)
            continue
        items.append(item)
    return items


def merge_items(batches: Iterable[Iterable[CatalogItem]]) -> List[CatalogItem]:
    """One entry per ASIN in first-seen order; later hits only add matched keywords."""
    merged = {}
    for batch in batches:
        for item in batch:
            existing = merged.get(item.asin)
            if existing is None:
                merged[item.asin] = replace(item, matched_keywords=list(item.matched_keywords))
            else:
                existing.add_keywords(item.matched_keywords)
    return list(merged.values())


def fallback_search_item(keyword, config) -> CatalogItem:
    """A plain "search on Amazon" link for when the API found nothing."""
    query = urlencode({'k': keyword, 'tag': config.partner_tag})
    return CatalogItem(
        asin=f'search-{keyword}',
        title=f'Search Amazon for "{keyword}"',
        url=f'https://{config.marketplace}/s?{query}',
        matched_keywords=[keyword],
    )


def search_products(keywords, config, session=None, cancel: Optional[CancelToken] = None,
                    max_results=MAX_RESULTS, item_count=amazon_paapi.DEFAULT_ITEM_COUNT,
                    fallback_link=False) -> List[CatalogItem]:
    """Search each keyword in order and return merged, de-duplicated products.

    Raises UpstreamError / TransportError from the first failing keyword and
    SearchCancelled if `cancel` fires; no partial results are returned.
    """
    queries = normalize_keywords(keywords)
    if not queries:
        return []

    logger.info('Searching PA-API for %d keyword(s)', len(queries))
    batches = []
    for keyword in queries:
        if cancel is not None:
            cancel.raise_if_cancelled(f'before keyword "{keyword}"')
        response = amazon_paapi.search_items(keyword, config, session=session, item_count=item_count)
        if cancel is not None:
            cancel.raise_if_cancelled(f'after keyword "{keyword}"')
        items = parse_response(response, keyword)
        logger.debug('Keyword %r returned %d item(s)', keyword, len(items))
        batches.append(items)

    products = merge_items(batches)[:max_results]
    if not products and fallback_link:
        products = [fallback_search_item(queries[0], config)]
    logger.info('Returning %d product(s)', len(products))
    return products
