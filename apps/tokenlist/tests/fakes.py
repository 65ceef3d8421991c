from __future__ import annotations

from apps.tokenlist.background import BackgroundRunner
from apps.tokenlist.models import TokenDetails, TokenMetadata


def address(n: int) -> str:
    return f'0x{n:040x}'


def token(n: int, token_id: int | None, symbol: str | None = None) -> TokenDetails:
    symbol = symbol or f'TK{n}'
    return TokenDetails(
        address=address(n),
        id=token_id,
        symbol=symbol,
        name=f'Token {symbol}',
        decimals=18,
    )


def metadata(n: int, symbol: str | None = None) -> TokenMetadata:
    symbol = symbol or f'TK{n}'
    return TokenMetadata(address=address(n), symbol=symbol, name=f'Token {symbol}', decimals=18)


class FakeExchange:
    """Exchange contract whose slot ids are the positions in ``listed``."""

    def __init__(self, listed: dict[int, list[str]]) -> None:
        self.listed = {network_id: list(addresses) for network_id, addresses in listed.items()}
        self.num_tokens_failures = 0
        # address -> remaining failures, -1 fails forever
        self.id_failures: dict[str, int] = {}
        self.num_tokens_calls = 0
        self.has_token_calls: list[str] = []

    async def get_num_tokens(self, network_id: int) -> int:
        self.num_tokens_calls += 1
        if self.num_tokens_failures:
            self.num_tokens_failures -= 1
            raise ConnectionError('rpc unavailable')
        return len(self.listed.get(network_id, []))

    async def get_token_address_by_id(self, network_id: int, token_id: int) -> str:
        return self.listed[network_id][token_id]

    async def has_token(self, network_id: int, token_address: str) -> bool:
        self.has_token_calls.append(token_address)
        self._maybe_fail(token_address)
        return token_address in self.listed.get(network_id, [])

    async def get_token_id_by_address(self, network_id: int, token_address: str) -> int:
        return self.listed[network_id].index(token_address)

    def _maybe_fail(self, token_address: str) -> None:
        remaining = self.id_failures.get(token_address, 0)
        if remaining == 0:
            return
        if remaining > 0:
            self.id_failures[token_address] = remaining - 1
        raise TimeoutError(f'timed out reading {token_address}')


class FakeTcr:
    def __init__(self, addresses: dict[int, set[str]]) -> None:
        self.addresses = addresses

    async def get_tokens(self, network_id: int) -> set[str]:
        return set(self.addresses.get(network_id, set()))


class FakeErc20Resolver:
    def __init__(self, known: dict[str, TokenMetadata | None] | None = None, broken: set[str] | None = None) -> None:
        self.known = dict(known or {})
        self.broken = set(broken or set())
        self.calls: list[str] = []

    async def get_token_from_erc20(self, network_id: int, token_address: str) -> TokenMetadata | None:
        self.calls.append(token_address)
        if token_address in self.broken:
            raise ConnectionError(f'rpc failed for {token_address}')
        return self.known.get(token_address)


class RecordingRunner(BackgroundRunner):
    def __init__(self) -> None:
        super().__init__()
        self.delays: list[float] = []

    def spawn_later(self, delay, factory, *, name=None):
        self.delays.append(delay)
        return super().spawn_later(delay, factory, name=name)
