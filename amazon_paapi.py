"""Amazon Product Advertising API v5 client with hand-rolled AWS SigV4 signing.

Usage:
  Build a PaapiConfig (see paapi_config.py) and call search_items(keyword, config).
  For multi-keyword searches with merging use product_search.search_products.

Only the SearchItems operation is implemented. Each call is signed with a
fresh timestamp; nothing here retries, and a retry must go through
sign_request again.
"""
import datetime
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import requests

from paapi_errors import TransportError, UpstreamError

logger = logging.getLogger(__name__)

ALGORITHM = 'AWS4-HMAC-SHA256'
SERVICE = 'ProductAdvertisingAPI'
SEARCH_ITEMS_PATH = '/paapi5/searchitems'
SEARCH_ITEMS_TARGET = 'com.amazon.paapi5.v1.ProductAdvertisingAPIv1.SearchItems'
CONTENT_TYPE = 'application/json; charset=utf-8'
CONTENT_ENCODING = 'amz-1.0'
DEFAULT_ITEM_COUNT = 6

RESOURCES = [
    'Images.Primary.Medium',
    'ItemInfo.Title',
    'Offers.Listings.Price',
    'CustomerReviews.Count',
    'CustomerReviews.StarRating',
]


def _to_bytes(data):
    if isinstance(data, str):
        return data.encode('utf-8')
    return data


def sha256_hex(data) -> str:
    return hashlib.sha256(_to_bytes(data)).hexdigest()


def hmac_sha256(key, data) -> bytes:
    return hmac.new(_to_bytes(key), _to_bytes(data), hashlib.sha256).digest()


def hmac_sha256_hex(key, data) -> str:
    return hmac.new(_to_bytes(key), _to_bytes(data), hashlib.sha256).hexdigest()


def get_signature_key(secret_key, date_stamp, region_name, service_name) -> bytes:
    k_date = hmac_sha256('AWS4' + secret_key, date_stamp)
    k_region = hmac_sha256(k_date, region_name)
    k_service = hmac_sha256(k_region, service_name)
    k_signing = hmac_sha256(k_service, 'aws4_request')
    return k_signing


def amz_timestamps(now=None) -> Tuple[str, str]:
    """Return (amz_date, date_stamp) for `now` (UTC), e.g. ('20240501T093000Z', '20240501')."""
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(datetime.timezone.utc)
    return now.strftime('%Y%m%dT%H%M%SZ'), now.strftime('%Y%m%d')


def canonical_header_list(headers: Dict[str, str]) -> List[Tuple[str, str]]:
    """Lowercase names, strip values, sort by name."""
    return sorted((name.strip().lower(), str(value).strip()) for name, value in headers.items())


def build_canonical_request(method, path, headers, payload_hash, query='') -> Tuple[str, str]:
    """Return (canonical_request, signed_headers).

    Header order in `headers` does not matter; output is always sorted by
    lowercase header name.
    """
    pairs = canonical_header_list(headers)
    canonical_headers = ''.join(f'{name}:{value}\n' for name, value in pairs)
    signed_headers = ';'.join(name for name, _ in pairs)
    canonical_request = '\n'.join([method, path, query, canonical_headers, signed_headers, payload_hash])
    return canonical_request, signed_headers


def build_credential_scope(date_stamp, region, service=SERVICE) -> str:
    return f'{date_stamp}/{region}/{service}/aws4_request'


def build_string_to_sign(amz_date, credential_scope, canonical_request) -> str:
    return '\n'.join([ALGORITHM, amz_date, credential_scope, sha256_hex(canonical_request)])


def build_authorization_header(access_key, credential_scope, signed_headers, signature) -> str:
    return (f'{ALGORITHM} Credential={access_key}/{credential_scope}, '
            f'SignedHeaders={signed_headers}, Signature={signature}')


@dataclass
class SignedRequestContext:
    """Everything needed to send one signed call. Never reuse across calls."""
    amz_date: str
    date_stamp: str
    method: str
    host: str
    path: str
    canonical_headers: List[Tuple[str, str]]
    signed_headers: str
    payload_hash: str
    body: bytes
    canonical_request: str = ''
    string_to_sign: str = ''
    authorization: str = field(default='', repr=False)

    @property
    def url(self) -> str:
        return f'https://{self.host}{self.path}'

    def headers(self) -> Dict[str, str]:
        out = dict(self.canonical_headers)
        out['content-encoding'] = CONTENT_ENCODING
        out['Authorization'] = self.authorization
        return out


def sign_request(config, payload, now=None, target=SEARCH_ITEMS_TARGET, path=SEARCH_ITEMS_PATH) -> SignedRequestContext:
    """Serialize `payload` and sign it for config.host / config.region.

    Deterministic for a given `now`; pass nothing to sign with the current time.
    """
    amz_date, date_stamp = amz_timestamps(now)
    body = json.dumps(payload).encode('utf-8')
    payload_hash = sha256_hex(body)

    signed = {
        'content-type': CONTENT_TYPE,
        'host': config.host,
        'x-amz-content-sha256': payload_hash,
        'x-amz-date': amz_date,
        'x-amz-target': target,
    }
    canonical_request, signed_headers = build_canonical_request('POST', path, signed, payload_hash)

    credential_scope = build_credential_scope(date_stamp, config.region)
    string_to_sign = build_string_to_sign(amz_date, credential_scope, canonical_request)
    signing_key = get_signature_key(config.secret_key, date_stamp, config.region, SERVICE)
    signature = hmac_sha256_hex(signing_key, string_to_sign)

    return SignedRequestContext(
        amz_date=amz_date,
        date_stamp=date_stamp,
        method='POST',
        host=config.host,
        path=path,
        canonical_headers=canonical_header_list(signed),
        signed_headers=signed_headers,
        payload_hash=payload_hash,
        body=body,
        canonical_request=canonical_request,
        string_to_sign=string_to_sign,
        authorization=build_authorization_header(config.access_key, credential_scope, signed_headers, signature),
    )


def dispatch(config, context: SignedRequestContext, session=None, keyword=None) -> dict:
    """POST the signed request once. `session` may be a requests.Session."""
    client = session if session is not None else requests
    try:
        resp = client.post(context.url, headers=context.headers(), data=context.body, timeout=config.timeout)
    except requests.exceptions.RequestException as exc:
        logger.warning('PA-API transport failure for %r: %r', keyword, exc)
        raise TransportError(str(exc) or exc.__class__.__name__, keyword=keyword) from exc

    if not 200 <= resp.status_code < 300:
        body = resp.text or ''
        logger.warning('PA-API error for %r: HTTP %s %s', keyword, resp.status_code, body[:300])
        raise UpstreamError(resp.status_code, body, keyword=keyword)

    try:
        data = resp.json()
    except ValueError:
        logger.warning('PA-API returned a non-JSON body for %r', keyword)
        return {}
    return data if isinstance(data, dict) else {}


def build_search_payload(keyword, config, item_count=DEFAULT_ITEM_COUNT) -> dict:
    return {
        'Keywords': keyword,
        'PartnerTag': config.partner_tag,
        'PartnerType': 'Associates',
        'Marketplace': config.marketplace,
        'SearchIndex': 'All',
        'ItemCount': item_count,
        'Resources': RESOURCES,
    }


def search_items(keyword, config, session=None, item_count=DEFAULT_ITEM_COUNT, now=None) -> dict:
    """Run one SearchItems call; returns the raw response dict."""
    payload = build_search_payload(keyword, config, item_count)
    context = sign_request(config, payload, now=now)
    logger.debug('SearchItems %r signed at %s by %s...', keyword, context.amz_date, config.access_key[:4])
    return dispatch(config, context, session=session, keyword=keyword)
