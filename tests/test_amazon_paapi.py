import datetime
import hashlib
import hmac
import itertools
import json

import pytest

import amazon_paapi
from amazon_paapi import (
    build_authorization_header,
    build_canonical_request,
    build_credential_scope,
    build_string_to_sign,
    dispatch,
    get_signature_key,
    hmac_sha256_hex,
    search_items,
    sha256_hex,
    sign_request,
)
from conftest import FakeResponse, FakeSession
from paapi_errors import TransportError, UpstreamError

NOW = datetime.datetime(2024, 5, 1, 9, 30, 0, tzinfo=datetime.timezone.utc)


def test_sha256_hex_empty_payload():
    assert sha256_hex(b'') == 'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'
    assert sha256_hex('') == sha256_hex(b'')


def test_signing_key_matches_published_vector():
    key = get_signature_key('wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY', '20120215', 'us-east-1', 'iam')
    assert key.hex() == 'f4780e2d9f65fa895f9c67b32ce1baf0b0d8a43505a000a1a9e090d414db404d'


def test_signing_key_chain_for_paapi_region():
    secret = 'test-secret'

    def h(k, m):
        return hmac.new(k, m.encode('utf-8'), hashlib.sha256).digest()

    expected = h(h(h(h(('AWS4' + secret).encode('utf-8'), '20240501'), 'us-west-2'), 'ProductAdvertisingAPI'), 'aws4_request')
    assert get_signature_key(secret, '20240501', 'us-west-2', 'ProductAdvertisingAPI') == expected
    assert get_signature_key(secret, '20240502', 'us-west-2', 'ProductAdvertisingAPI') != expected


def test_get_vanilla_signature():
    headers = {'host': 'example.amazonaws.com', 'x-amz-date': '20150830T123600Z'}
    canonical, signed = build_canonical_request('GET', '/', headers, sha256_hex(b''))
    scope = build_credential_scope('20150830', 'us-east-1', 'service')
    sts = build_string_to_sign('20150830T123600Z', scope, canonical)
    assert sts.splitlines()[-1] == 'bb579772317eb040ac9ed261061d46c1f17a8133879d6129b6e1c25292927e63'

    key = get_signature_key('wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY', '20150830', 'us-east-1', 'service')
    signature = hmac_sha256_hex(key, sts)
    assert signature == '5fa00fa31553b73ebf1942676e86291e8372ff2a2260956d9b8aae1d763fbf31'
    assert build_authorization_header('AKIDEXAMPLE', scope, signed, signature) == (
        'AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/20150830/us-east-1/service/aws4_request, '
        'SignedHeaders=host;x-amz-date, '
        'Signature=5fa00fa31553b73ebf1942676e86291e8372ff2a2260956d9b8aae1d763fbf31'
    )


def test_canonical_request_layout():
    canonical, signed = build_canonical_request('POST', '/paapi5/searchitems', {'Host': 'h', 'X-Amz-Date': 'd'}, 'abc')
    assert canonical == 'POST\n/paapi5/searchitems\n\nhost:h\nx-amz-date:d\n\nhost;x-amz-date\nabc'
    assert signed == 'host;x-amz-date'


def test_canonical_headers_sorted_for_any_input_order():
    headers = [
        ('x-amz-target', 'target'),
        ('content-type', 'application/json; charset=utf-8'),
        ('x-amz-date', '20240501T093000Z'),
        ('host', 'webservices.amazon.co.jp'),
        ('x-amz-content-sha256', 'hash'),
    ]
    results = set()
    for perm in itertools.permutations(headers):
        results.add(build_canonical_request('POST', '/', dict(perm), 'hash'))
    assert len(results) == 1
    canonical, signed = results.pop()
    assert signed == 'content-type;host;x-amz-content-sha256;x-amz-date;x-amz-target'
    header_lines = canonical.split('\n')[3:8]
    assert [line.split(':', 1)[0] for line in header_lines] == signed.split(';')


def test_sign_request_is_deterministic(config):
    payload = amazon_paapi.build_search_payload('ramen', config)
    first = sign_request(config, payload, now=NOW)
    second = sign_request(config, payload, now=NOW)
    assert first.canonical_request == second.canonical_request
    assert first.string_to_sign == second.string_to_sign
    assert first.authorization == second.authorization
    assert first.body == second.body


def test_sign_request_fields(config):
    ctx = sign_request(config, {'Keywords': 'ramen'}, now=NOW)
    assert ctx.amz_date == '20240501T093000Z'
    assert ctx.date_stamp == '20240501'
    assert ctx.url == 'https://webservices.amazon.co.jp/paapi5/searchitems'
    assert ctx.signed_headers == 'content-type;host;x-amz-content-sha256;x-amz-date;x-amz-target'
    assert ctx.payload_hash == sha256_hex(ctx.body)
    assert ctx.authorization.startswith(
        'AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/20240501/us-west-2/ProductAdvertisingAPI/aws4_request, '
        'SignedHeaders=content-type;host;x-amz-content-sha256;x-amz-date;x-amz-target, Signature='
    )

    key = get_signature_key(config.secret_key, '20240501', 'us-west-2', 'ProductAdvertisingAPI')
    assert ctx.authorization.endswith('Signature=' + hmac_sha256_hex(key, ctx.string_to_sign))

    headers = ctx.headers()
    assert headers['x-amz-date'] == '20240501T093000Z'
    assert headers['x-amz-content-sha256'] == ctx.payload_hash
    assert headers['x-amz-target'] == amazon_paapi.SEARCH_ITEMS_TARGET
    assert headers['content-encoding'] == 'amz-1.0'
    assert headers['Authorization'] == ctx.authorization


def test_sign_request_converts_to_utc(config):
    jst = datetime.timezone(datetime.timedelta(hours=9))
    ctx = sign_request(config, {}, now=datetime.datetime(2024, 5, 2, 1, 0, 0, tzinfo=jst))
    assert ctx.amz_date == '20240501T160000Z'
    assert ctx.date_stamp == '20240501'


def test_new_timestamp_changes_signature(config):
    a = sign_request(config, {'Keywords': 'x'}, now=NOW)
    b = sign_request(config, {'Keywords': 'x'}, now=NOW + datetime.timedelta(seconds=1))
    assert a.authorization != b.authorization


def test_secret_not_in_repr(config):
    ctx = sign_request(config, {}, now=NOW)
    assert config.secret_key not in repr(config)
    assert 'Signature=' not in repr(ctx)


def test_dispatch_returns_json(config):
    session = FakeSession(default=FakeResponse(200, {'SearchResult': {'Items': []}}))
    ctx = sign_request(config, {'Keywords': 'ramen'}, now=NOW)
    assert dispatch(config, ctx, session=session) == {'SearchResult': {'Items': []}}
    call = session.calls[0]
    assert call['url'] == ctx.url
    assert call['data'] == ctx.body
    assert call['timeout'] == config.timeout
    assert call['headers']['Authorization'] == ctx.authorization


def test_dispatch_non_2xx_raises_upstream_error(config):
    session = FakeSession(default=FakeResponse(401, text='{"Errors":[{"Code":"InvalidSignature"}]}'))
    ctx = sign_request(config, {'Keywords': 'ramen'}, now=NOW)
    with pytest.raises(UpstreamError) as info:
        dispatch(config, ctx, session=session, keyword='ramen')
    assert info.value.status == 401
    assert 'InvalidSignature' in info.value.body
    assert info.value.to_payload()['details'] == info.value.body


def test_dispatch_transport_failure(config, connection_error):
    session = FakeSession(default=connection_error)
    ctx = sign_request(config, {'Keywords': 'ramen'}, now=NOW)
    with pytest.raises(TransportError) as info:
        dispatch(config, ctx, session=session)
    assert not isinstance(info.value, UpstreamError)
    assert info.value.__cause__ is connection_error


def test_dispatch_non_json_body_is_empty(config):
    session = FakeSession(default=FakeResponse(200, text='<html>oops</html>'))
    ctx = sign_request(config, {'Keywords': 'ramen'}, now=NOW)
    assert dispatch(config, ctx, session=session) == {}


def test_search_items_body(config):
    session = FakeSession()
    search_items('ramen', config, session=session)
    body = json.loads(session.calls[0]['data'])
    assert body == {
        'Keywords': 'ramen',
        'PartnerTag': 'example-22',
        'PartnerType': 'Associates',
        'Marketplace': 'www.amazon.co.jp',
        'SearchIndex': 'All',
        'ItemCount': 6,
        'Resources': amazon_paapi.RESOURCES,
    }
