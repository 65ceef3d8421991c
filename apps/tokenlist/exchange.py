from __future__ import annotations

from typing import Any

from web3 import Web3

from .clients import NetworkClients, UnknownNetworkError

BATCH_EXCHANGE_ABI = [
    {
        'inputs': [{'internalType': 'address', 'name': 'addr', 'type': 'address'}],
        'name': 'hasToken',
        'outputs': [{'internalType': 'bool', 'name': '', 'type': 'bool'}],
        'stateMutability': 'view',
        'type': 'function'
    },
    {
        'inputs': [{'internalType': 'address', 'name': 'addr', 'type': 'address'}],
        'name': 'tokenAddressToIdMap',
        'outputs': [{'internalType': 'uint16', 'name': '', 'type': 'uint16'}],
        'stateMutability': 'view',
        'type': 'function'
    },
    {
        'inputs': [{'internalType': 'uint16', 'name': 'id', 'type': 'uint16'}],
        'name': 'tokenIdToAddressMap',
        'outputs': [{'internalType': 'address', 'name': '', 'type': 'address'}],
        'stateMutability': 'view',
        'type': 'function'
    },
    {
        'inputs': [],
        'name': 'numTokens',
        'outputs': [{'internalType': 'uint16', 'name': '', 'type': 'uint16'}],
        'stateMutability': 'view',
        'type': 'function'
    }
]


class Web3ExchangeApi:
    def __init__(self, clients: NetworkClients, contract_addresses: dict[int, str]) -> None:
        self.clients = clients
        self.contract_addresses = dict(contract_addresses)
        self._contracts: dict[int, Any] = {}

    async def has_token(self, network_id: int, token_address: str) -> bool:
        contract = self._contract(network_id)
        return bool(await contract.functions.hasToken(Web3.to_checksum_address(token_address)).call())

    async def get_token_id_by_address(self, network_id: int, token_address: str) -> int:
        contract = self._contract(network_id)
        return int(await contract.functions.tokenAddressToIdMap(Web3.to_checksum_address(token_address)).call())

    async def get_token_address_by_id(self, network_id: int, token_id: int) -> str:
        contract = self._contract(network_id)
        return Web3.to_checksum_address(await contract.functions.tokenIdToAddressMap(token_id).call())

    async def get_num_tokens(self, network_id: int) -> int:
        contract = self._contract(network_id)
        return int(await contract.functions.numTokens().call())

    def _contract(self, network_id: int) -> Any:
        if network_id in self._contracts:
            return self._contracts[network_id]

        address = self.contract_addresses.get(network_id)
        if not address:
            raise UnknownNetworkError(network_id, 'exchange contract')

        web3 = self.clients.get(network_id)
        contract = web3.eth.contract(address=Web3.to_checksum_address(address), abi=BATCH_EXCHANGE_ABI)
        self._contracts[network_id] = contract
        return contract
