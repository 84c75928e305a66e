import json
import sys
from pathlib import Path

import pytest
import requests

# Ensure repo root is importable
ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from paapi_config import PaapiConfig  # noqa: E402


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload if payload is not None else {})

    def json(self):
        if self._payload is None:
            return json.loads(self.text)
        return self._payload


class FakeSession:
    """Stands in for requests.Session; answers per keyword found in the request body.

    `responses` maps keyword -> FakeResponse or an exception instance to raise.
    """

    def __init__(self, responses=None, default=None):
        self.responses = responses or {}
        self.default = default
        self.calls = []

    def post(self, url, headers=None, data=None, timeout=None):
        body = json.loads(data)
        self.calls.append({'url': url, 'headers': headers, 'data': data, 'body': body, 'timeout': timeout})
        answer = self.responses.get(body.get('Keywords'), self.default)
        if answer is None:
            answer = FakeResponse(200, {'SearchResult': {'Items': []}})
        if isinstance(answer, Exception):
            raise answer
        return answer

    @property
    def keywords(self):
        return [c['body']['Keywords'] for c in self.calls]


def raw_item(asin, title='Item', url=None, **extra):
    item = {
        'ASIN': asin,
        'DetailPageURL': url or f'https://www.amazon.co.jp/dp/{asin}',
        'ItemInfo': {'Title': {'DisplayValue': title}},
    }
    item.update(extra)
    return item


def search_result(*items):
    return FakeResponse(200, {'SearchResult': {'Items': list(items)}})


@pytest.fixture
def config():
    return PaapiConfig(
        access_key='AKIDEXAMPLE',
        secret_key='wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY',
        partner_tag='example-22',
    )


@pytest.fixture
def connection_error():
    return requests.exceptions.ConnectionError('Name or service not known')
