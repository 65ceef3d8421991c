"""Keeps each network's cached token list in line with the exchange contract.

The first read of a network triggers a background refresh. When the contract
lists more tokens than the cache holds, the eligible address set is rebuilt
and the new tokens are resolved as ERC20 contracts; otherwise only the slot
ids of cached tokens are re-read. Comparing counts misses a pass where
listings and delistings cancel out; that is accepted.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Awaitable, Callable, TypeVar

from prometheus_client import Counter

from .background import BackgroundRunner
from .collaborators import Erc20Resolver, ExchangeApi, SubscriptionCallback, TcrApi, TokenListStore, Unsubscribe
from .models import (
    IdRefreshResult,
    MetadataResult,
    NotAToken,
    Resolved,
    TokenDelisted,
    TokenDetails,
    TokenFetchFailed,
    TokenUpdated,
    TransientFailure,
)
from .retry import DEFAULT_RETRY_ATTEMPTS, retry
from .state import NetworkUpdateState

LOGGER = logging.getLogger(__name__)

REFRESH_RUNS_TOTAL = Counter(
    'tokenlist_refresh_runs_total',
    'Token list refresh passes started',
    ['network_id', 'mode']
)
REFRESH_FAILURES_TOTAL = Counter(
    'tokenlist_refresh_failures_total',
    'Token list refreshes that failed and will be retried on next read',
    ['network_id']
)

DEFAULT_ID_REFRESH_MAX_RETRIES = 3
DEFAULT_ID_REFRESH_RETRY_DELAY_SECONDS = 1.0

T = TypeVar('T')


class TokenIdRefreshExhausted(Exception):
    def __init__(self, network_id: int, addresses: list[str]) -> None:
        super().__init__(
            f'network_id={network_id} max retries exceeded fetching token ids for tokens {addresses}'
        )
        self.network_id = network_id
        self.addresses = addresses


class TokenMetadataUnavailable(Exception):
    def __init__(self, network_id: int, addresses: list[str]) -> None:
        super().__init__(
            f'network_id={network_id} could not fetch erc20 details for tokens {addresses}'
        )
        self.network_id = network_id
        self.addresses = addresses


class TokenListReconciler:
    def __init__(
        self,
        *,
        token_list_api: TokenListStore,
        exchange_api: ExchangeApi,
        erc20_resolver: Erc20Resolver,
        tcr_api: TcrApi | None = None,
        update_state: NetworkUpdateState | None = None,
        runner: BackgroundRunner | None = None,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        id_refresh_max_retries: int = DEFAULT_ID_REFRESH_MAX_RETRIES,
        id_refresh_retry_delay_seconds: float = DEFAULT_ID_REFRESH_RETRY_DELAY_SECONDS,
        id_refresh_exponential_backoff: bool = True
    ) -> None:
        self.token_list_api = token_list_api
        self.exchange_api = exchange_api
        self.erc20_resolver = erc20_resolver
        self.tcr_api = tcr_api
        self.update_state = update_state if update_state is not None else NetworkUpdateState()
        self.runner = runner if runner is not None else BackgroundRunner()
        self.retry_attempts = retry_attempts
        self.id_refresh_max_retries = id_refresh_max_retries
        self.id_refresh_retry_delay_seconds = id_refresh_retry_delay_seconds
        self.id_refresh_exponential_backoff = id_refresh_exponential_backoff

    def get_tokens(self, network_id: int) -> list[TokenDetails]:
        if network_id not in self.update_state:
            LOGGER.debug('will update tokens network_id=%s', network_id)
            # mark before spawning so reads in the same tick do not queue a second refresh
            self.update_state.mark(network_id)
            try:
                self.runner.spawn(self.update_tokens(network_id), name=f'update-tokens-{network_id}')
            except RuntimeError:
                LOGGER.warning('no running event loop; token refresh skipped network_id=%s', network_id)
                self.update_state.unmark(network_id)
        return self.token_list_api.get_tokens(network_id)

    def subscribe(self, callback: SubscriptionCallback) -> Unsubscribe:
        return self.token_list_api.subscribe(callback)

    async def update_tokens(self, network_id: int) -> None:
        self.update_state.mark(network_id)

        try:
            num_tokens = await self._retry(lambda: self.exchange_api.get_num_tokens(network_id))
            tokens = self.token_list_api.get_tokens(network_id)

            LOGGER.debug(
                'contract has %s tokens; local list has %s network_id=%s',
                num_tokens,
                len(tokens),
                network_id
            )
            if num_tokens > len(tokens):
                REFRESH_RUNS_TOTAL.labels(network_id=str(network_id), mode='full').inc()
                await self.update_token_details(network_id, num_tokens)
            else:
                REFRESH_RUNS_TOTAL.labels(network_id=str(network_id), mode='ids').inc()
                await self.update_token_ids(network_id, tokens)
        except Exception as exc:
            LOGGER.warning('failed to update tokens network_id=%s error=%s', network_id, exc)
            REFRESH_FAILURES_TOTAL.labels(network_id=str(network_id)).inc()
            self.update_state.unmark(network_id)

    async def update_token_ids(
        self,
        network_id: int,
        tokens: list[TokenDetails],
        max_retries: int | None = None,
        retry_delay: float | None = None,
        exponential_backoff: bool | None = None
    ) -> None:
        if max_retries is None:
            max_retries = self.id_refresh_max_retries
        if retry_delay is None:
            retry_delay = self.id_refresh_retry_delay_seconds
        if exponential_backoff is None:
            exponential_backoff = self.id_refresh_exponential_backoff

        if max_retries <= 0:
            raise TokenIdRefreshExhausted(network_id, [token.address for token in tokens])

        results = await asyncio.gather(*(self._update_token_id(network_id, token) for token in tokens))

        updated: dict[str, TokenDetails] = {}
        failed: list[TokenDetails] = []
        to_remove: set[str] = set()
        for result in results:
            if isinstance(result, TokenDelisted):
                to_remove.add(result.token.address)
            elif isinstance(result, TokenFetchFailed):
                failed.append(result.token)
            else:
                updated[result.token.address] = result.token

        if to_remove or updated:
            LOGGER.debug(
                'updated %s ids and removed %s tokens network_id=%s',
                len(updated),
                len(to_remove),
                network_id
            )
            # rebuild from the store, it may have changed while the ids were in flight
            token_list = [
                updated.get(token.address, token)
                for token in self.token_list_api.get_tokens(network_id)
                if token.address not in to_remove
            ]
            self.token_list_api.persist_tokens(network_id, token_list)

        if failed:
            LOGGER.debug(
                'failed to fetch ids for %s tokens; trying again in %ss network_id=%s',
                len(failed),
                retry_delay,
                network_id
            )
            next_delay = retry_delay * (2 if exponential_backoff else 1)
            self.runner.spawn_later(
                retry_delay,
                lambda: self.update_token_ids(network_id, failed, max_retries - 1, next_delay, exponential_backoff),
                name=f'update-token-ids-{network_id}'
            )

    async def update_token_details(self, network_id: int, num_tokens: int) -> None:
        filtered_addresses_and_ids = await self._get_filtered_ids_map(network_id, num_tokens)
        local_tokens = {token.address: token for token in self.token_list_api.get_tokens(network_id)}

        known_tokens: list[TokenDetails] = []
        pending: list[Awaitable[MetadataResult]] = []
        for token_address, token_id in filtered_addresses_and_ids.items():
            token = local_tokens.get(token_address)
            if token is not None:
                known_tokens.append(token)
            else:
                pending.append(self._resolve_token(network_id, token_address, token_id))

        results = await asyncio.gather(*pending)
        fetched_tokens = [result.token for result in results if isinstance(result, Resolved)]
        unresolved = [result.address for result in results if isinstance(result, TransientFailure)]

        token_list = known_tokens + fetched_tokens
        self.token_list_api.persist_tokens(network_id, token_list)

        if unresolved:
            raise TokenMetadataUnavailable(network_id, unresolved)

    async def fetch_addresses_and_ids(self, network_id: int, num_tokens: int) -> dict[str, int]:
        LOGGER.debug('fetching addresses for ids from 0 to %s network_id=%s', num_tokens - 1, network_id)

        async def _address_and_id(token_id: int) -> tuple[str, int]:
            token_address = await self.exchange_api.get_token_address_by_id(network_id, token_id)
            return token_address, token_id

        pairs = await asyncio.gather(*(_address_and_id(token_id) for token_id in range(num_tokens)))
        return dict(pairs)

    async def fetch_tcr_addresses(self, network_id: int) -> set[str]:
        if self.tcr_api is None:
            return set()
        return set(await self.tcr_api.get_tokens(network_id))

    async def _get_filtered_ids_map(self, network_id: int, num_tokens: int) -> dict[str, int]:
        tcr_addresses, listed_addresses_and_ids = await asyncio.gather(
            self._retry(lambda: self.fetch_tcr_addresses(network_id)),
            self._retry(lambda: self.fetch_addresses_and_ids(network_id, num_tokens)),
        )

        if tcr_addresses:
            LOGGER.debug('tcr contains %s addresses network_id=%s', len(tcr_addresses), network_id)
            filtered: dict[str, int] = {}
            for token_address, token_id in listed_addresses_and_ids.items():
                on_tcr = token_address in tcr_addresses
                LOGGER.debug('%s : %s on_tcr=%s network_id=%s', token_id, token_address, on_tcr, network_id)
                if on_tcr:
                    filtered[token_address] = token_id
            return filtered

        LOGGER.debug('not using a tcr; filtering by local token list network_id=%s', network_id)
        return {
            token.address: listed_addresses_and_ids[token.address]
            for token in self.token_list_api.get_tokens(network_id)
            if token.address in listed_addresses_and_ids
        }

    async def _update_token_id(self, network_id: int, token: TokenDetails) -> IdRefreshResult:
        try:
            has_token = await self.exchange_api.has_token(network_id, token.address)
            if not has_token:
                return TokenDelisted(token)
            token_id = await self.exchange_api.get_token_id_by_address(network_id, token.address)
            return TokenUpdated(replace(token, id=token_id))
        except Exception as exc:
            LOGGER.debug(
                'failed to fetch id from contract network_id=%s address=%s error=%s',
                network_id,
                token.address,
                exc
            )
            return TokenFetchFailed(token, exc)

    async def _resolve_token(self, network_id: int, token_address: str, token_id: int) -> MetadataResult:
        try:
            metadata = await self.erc20_resolver.get_token_from_erc20(network_id, token_address)
        except Exception as exc:
            LOGGER.warning(
                'failed to fetch erc20 details network_id=%s address=%s error=%s',
                network_id,
                token_address,
                exc
            )
            return TransientFailure(token_address, exc)

        if metadata is None:
            LOGGER.debug('address %s is not a valid erc20 token network_id=%s', token_address, network_id)
            return NotAToken(token_address)

        LOGGER.debug(
            "got details for address %s: symbol '%s' name '%s' network_id=%s",
            metadata.address,
            metadata.symbol,
            metadata.name,
            network_id
        )
        return Resolved(TokenDetails.from_metadata(metadata, token_id))

    async def _retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await retry(operation, attempts=self.retry_attempts)


def get_tokens_factory(
    *,
    token_list_api: TokenListStore,
    exchange_api: ExchangeApi,
    erc20_resolver: Erc20Resolver,
    tcr_api: TcrApi | None = None,
    update_state: NetworkUpdateState | None = None,
    runner: BackgroundRunner | None = None,
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
    id_refresh_max_retries: int = DEFAULT_ID_REFRESH_MAX_RETRIES,
    id_refresh_retry_delay_seconds: float = DEFAULT_ID_REFRESH_RETRY_DELAY_SECONDS,
    id_refresh_exponential_backoff: bool = True
) -> Callable[[int], list[TokenDetails]]:
    reconciler = TokenListReconciler(
        token_list_api=token_list_api,
        exchange_api=exchange_api,
        erc20_resolver=erc20_resolver,
        tcr_api=tcr_api,
        update_state=update_state,
        runner=runner,
        retry_attempts=retry_attempts,
        id_refresh_max_retries=id_refresh_max_retries,
        id_refresh_retry_delay_seconds=id_refresh_retry_delay_seconds,
        id_refresh_exponential_backoff=id_refresh_exponential_backoff
    )
    return reconciler.get_tokens


def subscribe_to_token_list_factory(
    *,
    token_list_api: TokenListStore
) -> Callable[[SubscriptionCallback], Unsubscribe]:
    def subscribe(callback: SubscriptionCallback) -> Unsubscribe:
        return token_list_api.subscribe(callback)

    return subscribe
