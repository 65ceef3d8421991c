import json
import tempfile
import unittest
from dataclasses import replace
from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient

from apps.tokenlist import main
from apps.tokenlist.config import get_settings
from apps.tokenlist.tcr import Web3TcrApi

WETH = '0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2'
REGISTRY = '0x6F400810b62df8E13fded51bE75fF5393eaa841F'


def _write_token_list(directory: str) -> Path:
    path = Path(directory) / 'token-list.json'
    payload = {
        'networks': [
            {
                'network_id': 1,
                'tokens': [{'address': WETH, 'symbol': 'WETH', 'name': 'Wrapped Ether', 'decimals': 18, 'id': 0}]
            }
        ]
    }
    path.write_text(json.dumps(payload), encoding='utf-8')
    return path


class BuildReconcilerTests(unittest.TestCase):
    def tearDown(self) -> None:
        get_settings.cache_clear()

    def test_wires_collaborators_from_settings(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            settings = replace(
                get_settings(),
                token_list_path=str(_write_token_list(tmp)),
                rpc_urls={1: 'http://localhost:8545'},
                tcr_addresses={1: REGISTRY},
                tcr_list_id=3,
                retry_attempts=5,
                id_refresh_max_retries=2
            )
            reconciler = main.build_reconciler(settings)

        self.assertIsInstance(reconciler.tcr_api, Web3TcrApi)
        self.assertEqual(reconciler.tcr_api.list_id, 3)
        self.assertEqual(reconciler.retry_attempts, 5)
        self.assertEqual(reconciler.id_refresh_max_retries, 2)
        self.assertEqual([t.symbol for t in reconciler.token_list_api.get_tokens(1)], ['WETH'])

    def test_no_registry_without_tcr_addresses(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            settings = replace(
                get_settings(),
                token_list_path=str(Path(tmp) / 'missing.json'),
                tcr_addresses={}
            )
            reconciler = main.build_reconciler(settings)

        self.assertIsNone(reconciler.tcr_api)
        self.assertEqual(reconciler.token_list_api.get_tokens(1), [])


class TokensEndpointTests(unittest.TestCase):
    def tearDown(self) -> None:
        get_settings.cache_clear()

    def test_serves_cached_list_and_validates_network(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            settings = replace(
                get_settings(),
                token_list_path=str(_write_token_list(tmp)),
                rpc_urls={},
                exchange_addresses={},
                tcr_addresses={}
            )
            with patch.object(main, 'settings', settings):
                with TestClient(main.app) as client:
                    health = client.get('/health')
                    response = client.get('/tokens/1')
                    invalid = client.get('/tokens/0')

        self.assertEqual(health.json(), {'status': 'ok'})
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload['network_id'], 1)
        self.assertEqual(payload['tokens'][0]['address'], WETH)
        self.assertEqual(payload['tokens'][0]['id'], 0)
        self.assertEqual(invalid.status_code, 422)
