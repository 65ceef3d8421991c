from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Literal

LOGGER = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {'1', 'true', 'yes', 'y', 'on'}


def _env_network_map(name: str) -> dict[int, str]:
    # "1=https://mainnet...,4=https://rinkeby..."
    raw = os.getenv(name, '').strip()
    mapping: dict[int, str] = {}
    if not raw:
        return mapping

    for chunk in raw.split(','):
        item = chunk.strip()
        if not item or '=' not in item:
            continue
        network_raw, value = item.split('=', 1)
        try:
            network_id = int(network_raw.strip())
        except ValueError:
            LOGGER.warning('skipping malformed entry in %s: %s', name, item)
            continue
        value = value.strip()
        if network_id <= 0 or not value:
            continue
        mapping[network_id] = value
    return mapping


@dataclass(frozen=True)
class Settings:
    app_name: str
    environment: Literal['dev', 'prod', 'test']
    cors_origins: str
    log_level: str
    token_list_path: str
    rpc_timeout_seconds: int
    tcr_list_id: int
    retry_attempts: int
    id_refresh_max_retries: int
    id_refresh_retry_delay_seconds: float
    id_refresh_exponential_backoff: bool
    rpc_urls: dict[int, str] = field(default_factory=dict)
    exchange_addresses: dict[int, str] = field(default_factory=dict)
    tcr_addresses: dict[int, str] = field(default_factory=dict)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    environment = os.getenv('ENVIRONMENT', 'dev').strip().lower()
    if environment not in {'dev', 'prod', 'test'}:
        environment = 'dev'

    return Settings(
        app_name=os.getenv('APP_NAME', 'tokenlist-api'),
        environment=environment,  # type: ignore[arg-type]
        cors_origins=os.getenv('CORS_ORIGINS', 'http://localhost:3300'),
        log_level=os.getenv('LOG_LEVEL', 'INFO').strip().upper(),
        token_list_path=os.getenv('TOKEN_LIST_PATH', 'data/token-list.json'),
        rpc_timeout_seconds=int(os.getenv('RPC_TIMEOUT_SECONDS', '10')),
        tcr_list_id=int(os.getenv('TCR_LIST_ID', '0')),
        retry_attempts=max(1, int(os.getenv('RETRY_ATTEMPTS', '3'))),
        id_refresh_max_retries=int(os.getenv('ID_REFRESH_MAX_RETRIES', '3')),
        id_refresh_retry_delay_seconds=float(os.getenv('ID_REFRESH_RETRY_DELAY_SECONDS', '1.0')),
        id_refresh_exponential_backoff=_env_bool('ID_REFRESH_EXPONENTIAL_BACKOFF', True),
        rpc_urls=_env_network_map('NETWORK_RPC_URLS'),
        exchange_addresses=_env_network_map('EXCHANGE_CONTRACT_ADDRESSES'),
        tcr_addresses=_env_network_map('TCR_CONTRACT_ADDRESSES'),
    )


def configure_logging(settings: Settings | None = None) -> None:
    level = (settings or get_settings()).log_level
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
