from __future__ import annotations

import logging

from web3 import AsyncHTTPProvider, AsyncWeb3

LOGGER = logging.getLogger(__name__)


class UnknownNetworkError(KeyError):
    def __init__(self, network_id: int, what: str = 'rpc url') -> None:
        super().__init__(f'network_id={network_id} has no configured {what}')
        self.network_id = network_id


class NetworkClients:
    def __init__(self, rpc_urls: dict[int, str], timeout_seconds: int = 10) -> None:
        self._rpc_urls = dict(rpc_urls)
        self._timeout_seconds = timeout_seconds
        self._clients: dict[int, AsyncWeb3] = {}

    @property
    def network_ids(self) -> list[int]:
        return sorted(self._rpc_urls)

    def get(self, network_id: int) -> AsyncWeb3:
        client = self._clients.get(network_id)
        if client is not None:
            return client

        rpc_url = self._rpc_urls.get(network_id)
        if not rpc_url:
            raise UnknownNetworkError(network_id)

        client = AsyncWeb3(AsyncHTTPProvider(rpc_url, request_kwargs={'timeout': self._timeout_seconds}))
        self._clients[network_id] = client
        LOGGER.info('created rpc client network_id=%s rpc_url=%s', network_id, rpc_url)
        return client
