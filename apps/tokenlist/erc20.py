from __future__ import annotations

import asyncio
import logging
from typing import Any

from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from .clients import NetworkClients
from .models import TokenMetadata

LOGGER = logging.getLogger(__name__)

ERC20_META_ABI = [
    {
        'inputs': [],
        'name': 'name',
        'outputs': [{'internalType': 'string', 'name': '', 'type': 'string'}],
        'stateMutability': 'view',
        'type': 'function'
    },
    {
        'inputs': [],
        'name': 'symbol',
        'outputs': [{'internalType': 'string', 'name': '', 'type': 'string'}],
        'stateMutability': 'view',
        'type': 'function'
    },
    {
        'inputs': [],
        'name': 'decimals',
        'outputs': [{'internalType': 'uint8', 'name': '', 'type': 'uint8'}],
        'stateMutability': 'view',
        'type': 'function'
    }
]

# Errors meaning the contract does not answer like an ERC20, as opposed to transport failures.
_NOT_ERC20_ERRORS = (BadFunctionCallOutput, ContractLogicError)
_OPTIONAL_FIELD_ERRORS = (BadFunctionCallOutput, ContractLogicError, ValueError)


class Web3Erc20Resolver:
    def __init__(self, clients: NetworkClients) -> None:
        self.clients = clients

    async def get_token_from_erc20(self, network_id: int, token_address: str) -> TokenMetadata | None:
        if not Web3.is_address(token_address):
            return None

        web3 = self.clients.get(network_id)
        address = Web3.to_checksum_address(token_address)

        code = await web3.eth.get_code(address)
        if not code:
            LOGGER.debug('no contract code at address=%s network_id=%s', address, network_id)
            return None

        contract = web3.eth.contract(address=address, abi=ERC20_META_ABI)
        try:
            decimals = int(await contract.functions.decimals().call())
        except _NOT_ERC20_ERRORS as exc:
            LOGGER.debug('decimals() failed address=%s network_id=%s error=%s', address, network_id, exc)
            return None

        name, symbol = await asyncio.gather(
            self._optional_string(contract.functions.name()),
            self._optional_string(contract.functions.symbol()),
        )
        return TokenMetadata(address=address, symbol=symbol, name=name, decimals=decimals)

    async def _optional_string(self, call: Any) -> str | None:
        # name() and symbol() are optional in ERC20
        try:
            value = await call.call()
        except _OPTIONAL_FIELD_ERRORS:
            return None
        value = str(value).strip()
        return value or None
