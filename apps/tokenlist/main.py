from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Path
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from prometheus_client import Counter, make_asgi_app

from .clients import NetworkClients
from .config import Settings, configure_logging, get_settings
from .erc20 import Web3Erc20Resolver
from .exchange import Web3ExchangeApi
from .reconciler import TokenListReconciler
from .tcr import Web3TcrApi
from .token_store import InMemoryTokenListStore

settings = get_settings()
logger = logging.getLogger(__name__)

TOKEN_LIST_READS_TOTAL = Counter(
    'tokenlist_reads_total',
    'Token list reads served by the API',
    ['network_id']
)

app = FastAPI(title=settings.app_name, default_response_class=ORJSONResponse)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[x.strip() for x in settings.cors_origins.split(',') if x.strip()],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*']
)
app.mount('/metrics', make_asgi_app())

_reconciler: TokenListReconciler | None = None


def build_reconciler(settings: Settings) -> TokenListReconciler:
    clients = NetworkClients(settings.rpc_urls, timeout_seconds=settings.rpc_timeout_seconds)
    tcr_api = None
    if settings.tcr_addresses:
        tcr_api = Web3TcrApi(clients, settings.tcr_addresses, list_id=settings.tcr_list_id)

    return TokenListReconciler(
        token_list_api=InMemoryTokenListStore.from_file(settings.token_list_path),
        exchange_api=Web3ExchangeApi(clients, settings.exchange_addresses),
        erc20_resolver=Web3Erc20Resolver(clients),
        tcr_api=tcr_api,
        retry_attempts=settings.retry_attempts,
        id_refresh_max_retries=settings.id_refresh_max_retries,
        id_refresh_retry_delay_seconds=settings.id_refresh_retry_delay_seconds,
        id_refresh_exponential_backoff=settings.id_refresh_exponential_backoff
    )


@app.on_event('startup')
async def startup() -> None:
    global _reconciler
    configure_logging(settings)
    _reconciler = build_reconciler(settings)
    logger.info(
        'token list service started networks=%s tcr_networks=%s',
        sorted(settings.rpc_urls),
        sorted(settings.tcr_addresses)
    )


@app.on_event('shutdown')
async def shutdown() -> None:
    if _reconciler is not None:
        await _reconciler.runner.cancel_all()


@app.get('/health')
async def health() -> dict[str, str]:
    return {'status': 'ok'}


@app.get('/tokens/{network_id}')
async def tokens(network_id: int = Path(..., gt=0)) -> dict:
    if _reconciler is None:
        raise HTTPException(status_code=503, detail='token list service is starting')
    TOKEN_LIST_READS_TOTAL.labels(network_id=str(network_id)).inc()
    token_list = _reconciler.get_tokens(network_id)
    return {
        'network_id': network_id,
        'tokens': [token.to_dict() for token in token_list]
    }
