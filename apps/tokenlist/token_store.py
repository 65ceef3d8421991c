from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from web3 import Web3

from .collaborators import SubscriptionCallback, Unsubscribe
from .models import TokenDetails

LOGGER = logging.getLogger(__name__)


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_token_list_path(path_value: str) -> Path:
    path = Path(path_value)
    if path.is_absolute():
        return path
    return _repo_root() / path


def _normalize_token(token: dict[str, Any]) -> TokenDetails | None:
    address = str(token.get('address', '')).strip()
    if not Web3.is_address(address):
        return None

    try:
        decimals = int(token.get('decimals', 18))
    except (TypeError, ValueError):
        decimals = 18

    token_id = token.get('id')
    try:
        token_id = int(token_id) if token_id is not None else None
    except (TypeError, ValueError):
        token_id = None

    symbol = str(token.get('symbol', '')).strip() or None
    name = str(token.get('name', '')).strip() or None
    image = str(token.get('image', '')).strip() or None

    return TokenDetails(
        address=Web3.to_checksum_address(address),
        id=token_id,
        symbol=symbol,
        name=name,
        decimals=max(0, min(36, decimals)),
        image=image,
    )


def _dedupe_tokens(tokens: list[TokenDetails]) -> list[TokenDetails]:
    seen: set[str] = set()
    deduped: list[TokenDetails] = []
    for token in tokens:
        if token.address in seen:
            continue
        seen.add(token.address)
        deduped.append(token)
    return deduped


def load_token_list(path_value: str) -> dict[int, list[TokenDetails]]:
    path = _resolve_token_list_path(path_value)
    if not path.exists():
        LOGGER.info('token list file not found path=%s; starting empty', path)
        return {}

    try:
        payload = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError:
        LOGGER.warning('token list file is not valid json path=%s; starting empty', path)
        return {}
    if not isinstance(payload, dict) or not isinstance(payload.get('networks'), list):
        return {}

    token_lists: dict[int, list[TokenDetails]] = {}
    for network in payload['networks']:
        if not isinstance(network, dict):
            continue
        try:
            network_id = int(network.get('network_id', 0))
        except (TypeError, ValueError):
            continue
        if network_id <= 0:
            continue

        raw_tokens = network.get('tokens') if isinstance(network.get('tokens'), list) else []
        tokens = [_normalize_token(t) for t in raw_tokens if isinstance(t, dict)]
        token_lists[network_id] = _dedupe_tokens([t for t in tokens if t is not None])

    LOGGER.info(
        'loaded token list path=%s networks=%s tokens=%s',
        path,
        len(token_lists),
        sum(len(tokens) for tokens in token_lists.values())
    )
    return token_lists


class InMemoryTokenListStore:
    def __init__(self, initial: dict[int, list[TokenDetails]] | None = None) -> None:
        self._tokens: dict[int, list[TokenDetails]] = {
            network_id: list(tokens) for network_id, tokens in (initial or {}).items()
        }
        self._subscribers: list[SubscriptionCallback] = []

    @classmethod
    def from_file(cls, path_value: str) -> InMemoryTokenListStore:
        return cls(load_token_list(path_value))

    def get_tokens(self, network_id: int) -> list[TokenDetails]:
        # Return a copy so callers cannot mutate the stored list.
        return list(self._tokens.get(network_id, []))

    def persist_tokens(self, network_id: int, token_list: list[TokenDetails]) -> None:
        self._tokens[network_id] = list(token_list)
        LOGGER.debug('persisted token list network_id=%s tokens=%s', network_id, len(token_list))
        for callback in list(self._subscribers):
            try:
                callback(network_id, self.get_tokens(network_id))
            except Exception:
                LOGGER.exception('token list subscriber failed network_id=%s', network_id)

    def subscribe(self, callback: SubscriptionCallback) -> Unsubscribe:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe
