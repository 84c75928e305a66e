"""Root logging setup shared by the API server and the scripts.

Level comes from the caller, else PAAPI_LOG_LEVEL, else INFO. Module loggers
never receive the secret key or the Authorization header; see amazon_paapi.py.
"""
import logging
import os

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'


def resolve_level(level=None) -> int:
    """Accept a level name ("debug"), a number as text ("10") or a logging constant."""
    if level is None:
        level = os.getenv('PAAPI_LOG_LEVEL', 'INFO')
    if isinstance(level, int):
        return level
    level = str(level).strip().upper()
    if level.isdigit():
        return int(level)
    resolved = logging.getLevelName(level)
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level=None) -> int:
    level = resolve_level(level)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # keep urllib3 connection chatter out of DEBUG runs of the search
    logging.getLogger('urllib3').setLevel(max(level, logging.INFO))
    return level
