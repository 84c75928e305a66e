"""HTTP API for the PA-API product search using FastAPI.

Run locally:
    pip install -e .
    uvicorn api_server:app --reload --port 8000

Endpoints:
- GET  /health
- POST /amazon-products   body: {"keywords": ["..."], "fallback": false}
- GET  /debug/paapi        credential diagnostics (prefixes and lengths only)

Credentials come from the environment (see paapi_config.py) and are read once;
until they are present every search fails with the same 400 payload.
"""
import logging
from functools import lru_cache
from typing import Any, List, Optional

import requests
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import product_search
from log_setup import setup_logging
from paapi_config import PaapiConfig, describe_env
from paapi_errors import ConfigurationError, PaapiError

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="PA-API Product Search")

# Allow all origins for local development (restrict in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ProductSearchRequest(BaseModel):
    keywords: Optional[List[Any]] = None
    fallback: bool = False


@lru_cache(maxsize=1)
def get_config() -> PaapiConfig:
    # a failed load is not cached, so fixing the env takes effect on the next call
    return PaapiConfig.from_env()


def get_session():
    # requests does not promise a Session is thread-safe; one per request
    session = requests.Session()
    try:
        yield session
    finally:
        session.close()


@app.exception_handler(PaapiError)
async def paapi_error_handler(request: Request, exc: PaapiError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": "Invalid request body", "details": details})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal error", "details": str(exc)})


@app.get("/health")
def health():
    try:
        get_config()
        configured = True
    except ConfigurationError:
        configured = False
    return {"ok": True, "configured": configured}


@app.post("/amazon-products")
def amazon_products(
    req: ProductSearchRequest,
    config: PaapiConfig = Depends(get_config),
    session: requests.Session = Depends(get_session),
):
    products = product_search.search_products(
        req.keywords or [],
        config,
        session=session,
        fallback_link=req.fallback,
    )
    return {"products": [p.to_dict() for p in products]}


@app.get("/debug/paapi")
def debug_paapi():
    return describe_env()
