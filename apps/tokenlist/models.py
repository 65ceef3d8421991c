from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class TokenMetadata:
    address: str
    symbol: str | None
    name: str | None
    decimals: int


@dataclass(frozen=True)
class TokenDetails:
    address: str
    id: int | None
    symbol: str | None
    name: str | None
    decimals: int
    image: str | None = None

    @classmethod
    def from_metadata(cls, metadata: TokenMetadata, token_id: int) -> TokenDetails:
        return cls(
            address=metadata.address,
            id=token_id,
            symbol=metadata.symbol,
            name=metadata.name,
            decimals=metadata.decimals,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            'address': self.address,
            'id': self.id,
            'symbol': self.symbol,
            'name': self.name,
            'decimals': self.decimals,
            'image': self.image,
        }


# Outcome of checking one cached token against the exchange contract.

@dataclass(frozen=True)
class TokenUpdated:
    token: TokenDetails


@dataclass(frozen=True)
class TokenDelisted:
    token: TokenDetails


@dataclass(frozen=True)
class TokenFetchFailed:
    token: TokenDetails
    error: BaseException


IdRefreshResult = Union[TokenUpdated, TokenDelisted, TokenFetchFailed]


# Outcome of probing a newly eligible address for ERC20 metadata.

@dataclass(frozen=True)
class Resolved:
    token: TokenDetails


@dataclass(frozen=True)
class NotAToken:
    address: str


@dataclass(frozen=True)
class TransientFailure:
    address: str
    error: BaseException


MetadataResult = Union[Resolved, NotAToken, TransientFailure]
