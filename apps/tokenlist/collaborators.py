from __future__ import annotations

from typing import Callable, Protocol

from .models import TokenDetails, TokenMetadata

SubscriptionCallback = Callable[[int, list[TokenDetails]], None]
Unsubscribe = Callable[[], None]


class TokenListStore(Protocol):
    def get_tokens(self, network_id: int) -> list[TokenDetails]:
        ...

    def persist_tokens(self, network_id: int, token_list: list[TokenDetails]) -> None:
        ...

    def subscribe(self, callback: SubscriptionCallback) -> Unsubscribe:
        ...


class ExchangeApi(Protocol):
    async def has_token(self, network_id: int, token_address: str) -> bool:
        ...

    async def get_token_id_by_address(self, network_id: int, token_address: str) -> int:
        ...

    async def get_token_address_by_id(self, network_id: int, token_id: int) -> str:
        ...

    async def get_num_tokens(self, network_id: int) -> int:
        ...


class TcrApi(Protocol):
    async def get_tokens(self, network_id: int) -> set[str]:
        ...


class Erc20Resolver(Protocol):
    async def get_token_from_erc20(self, network_id: int, token_address: str) -> TokenMetadata | None:
        ...
