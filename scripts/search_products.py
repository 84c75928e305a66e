"""Run a multi-keyword PA-API search from the shell and print the merged products.

Credentials are read from the environment (AMAZON_ACCESS_KEY_ID,
AMAZON_SECRET_ACCESS_KEY, AMAZON_PARTNER_TAG).

Usage:
    python scripts/search_products.py "ramen" "curry" --json
    python scripts/search_products.py --check     # print credential diagnostics only
"""
import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from log_setup import setup_logging  # noqa: E402
from paapi_config import PaapiConfig, describe_env  # noqa: E402
from paapi_errors import PaapiError  # noqa: E402
from product_search import search_products  # noqa: E402


def build_arg_parser():
    p = argparse.ArgumentParser(description='Search Amazon PA-API for several keywords')
    p.add_argument('keywords', nargs='*', help='Keywords (at most 5 are searched)')
    p.add_argument('--json', action='store_true', help='Print the raw JSON payload')
    p.add_argument('--fallback', action='store_true', help='Return a search link when nothing is found')
    p.add_argument('--check', action='store_true', help='Only print credential diagnostics')
    p.add_argument('--log-level', default=None, help='Log level (DEBUG, INFO, WARNING, ERROR)')
    return p


def main(argv=None):
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.check:
        print(json.dumps(describe_env(), indent=2))
        return 0

    try:
        config = PaapiConfig.from_env()
        products = search_products(args.keywords, config, fallback_link=args.fallback)
    except PaapiError as exc:
        print(json.dumps(exc.to_payload(), ensure_ascii=False), file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps({'products': [p.to_dict() for p in products]}, indent=2, ensure_ascii=False))
        return 0

    if not products:
        print('No products found')
    for i, p in enumerate(products, 1):
        price = f' {p.price}' if p.price else ''
        print(f'{i}. [{p.asin}] {p.title}{price}')
        print(f'   {p.url}')
        print(f'   matched: {", ".join(p.matched_keywords)}')
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
