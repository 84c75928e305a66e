"""Process-wide PA-API settings loaded from the environment.

Recognized env vars:
  - AMAZON_ACCESS_KEY_ID, AMAZON_SECRET_ACCESS_KEY, AMAZON_PARTNER_TAG (required)
  - AMAZON_PAAPI_HOST (default webservices.amazon.co.jp)
  - AMAZON_PAAPI_REGION (default us-west-2)
  - AMAZON_MARKETPLACE (default www.amazon.co.jp)
  - AMAZON_PAAPI_TIMEOUT (seconds, default 15)
"""
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from paapi_errors import ConfigurationError

DEFAULT_HOST = 'webservices.amazon.co.jp'
DEFAULT_REGION = 'us-west-2'
DEFAULT_MARKETPLACE = 'www.amazon.co.jp'
DEFAULT_TIMEOUT = 15.0

_REQUIRED_VARS = {
    'access_key': 'AMAZON_ACCESS_KEY_ID',
    'secret_key': 'AMAZON_SECRET_ACCESS_KEY',
    'partner_tag': 'AMAZON_PARTNER_TAG',
}


@dataclass(frozen=True)
class PaapiConfig:
    """Credentials plus the fixed marketplace endpoint.

    Build it once and pass it explicitly to the signer and the search.
    """
    access_key: str
    secret_key: str = field(repr=False)
    partner_tag: str
    host: str = DEFAULT_HOST
    region: str = DEFAULT_REGION
    marketplace: str = DEFAULT_MARKETPLACE
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'PaapiConfig':
        env = os.environ if environ is None else environ

        def _get(name: str, default: str = '') -> str:
            return (env.get(name) or default).strip()

        timeout_raw = _get('AMAZON_PAAPI_TIMEOUT', str(DEFAULT_TIMEOUT))
        try:
            timeout = float(timeout_raw)
        except ValueError:
            raise ConfigurationError(
                'Invalid Amazon API configuration',
                details=f'AMAZON_PAAPI_TIMEOUT must be a number, got {timeout_raw!r}',
            )

        cfg = cls(
            access_key=_get('AMAZON_ACCESS_KEY_ID'),
            secret_key=_get('AMAZON_SECRET_ACCESS_KEY'),
            partner_tag=_get('AMAZON_PARTNER_TAG'),
            host=_get('AMAZON_PAAPI_HOST', DEFAULT_HOST),
            region=_get('AMAZON_PAAPI_REGION', DEFAULT_REGION),
            marketplace=_get('AMAZON_MARKETPLACE', DEFAULT_MARKETPLACE),
            timeout=timeout,
        )
        cfg.validate()
        return cfg

    def validate(self) -> None:
        missing = [env_name for attr, env_name in _REQUIRED_VARS.items()
                   if not (getattr(self, attr) or '').strip()]
        if missing:
            raise ConfigurationError(
                'Amazon API credentials are missing',
                details='Set ' + ', '.join(missing),
            )
        if self.timeout <= 0:
            raise ConfigurationError(
                'Invalid Amazon API configuration',
                details='AMAZON_PAAPI_TIMEOUT must be > 0',
            )

    def describe(self) -> Dict[str, object]:
        return describe_credentials(self.access_key, self.secret_key, self.partner_tag, self.marketplace)


def describe_credentials(access_key: str, secret_key: str, partner_tag: str, marketplace: str) -> Dict[str, object]:
    """Safe diagnostics: presence flags, a 4-char key prefix and the secret's length only."""
    access_key = (access_key or '').strip()
    secret_key = (secret_key or '').strip()
    partner_tag = (partner_tag or '').strip()
    return {
        'hasId': bool(access_key),
        'idPrefix': access_key[:4] if access_key else None,
        'hasSecret': bool(secret_key),
        'secretLen': len(secret_key),
        'hasTag': bool(partner_tag),
        'tag': partner_tag,
        'marketplace': (marketplace or '').strip() or DEFAULT_MARKETPLACE,
    }


def describe_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, object]:
    """Like ``PaapiConfig.describe`` but never fails on missing variables."""
    env = os.environ if environ is None else environ
    return describe_credentials(
        env.get('AMAZON_ACCESS_KEY_ID', ''),
        env.get('AMAZON_SECRET_ACCESS_KEY', ''),
        env.get('AMAZON_PARTNER_TAG', ''),
        env.get('AMAZON_MARKETPLACE', ''),
    )
