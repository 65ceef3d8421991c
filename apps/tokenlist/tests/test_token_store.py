import json
import tempfile
import unittest
from pathlib import Path

from apps.tokenlist.models import TokenDetails
from apps.tokenlist.token_store import InMemoryTokenListStore, load_token_list

WETH = '0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2'


class TokenListFileTests(unittest.TestCase):
    def test_load_normalizes_and_skips_bad_entries(self) -> None:
        payload = {
            'version': 1,
            'networks': [
                {
                    'network_id': 1,
                    'tokens': [
                        {'address': WETH.lower(), 'symbol': 'WETH', 'name': 'Wrapped Ether', 'decimals': '18', 'id': 1},
                        {'address': WETH, 'symbol': 'WETH-dup', 'decimals': 18},
                        {'address': 'not-an-address', 'symbol': 'BAD'},
                        'garbage'
                    ]
                },
                {'network_id': 0, 'tokens': [{'address': WETH}]}
            ]
        }

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'token-list.json'
            path.write_text(json.dumps(payload), encoding='utf-8')
            token_lists = load_token_list(str(path))

        self.assertEqual(list(token_lists), [1])
        self.assertEqual(
            token_lists[1],
            [TokenDetails(address=WETH, id=1, symbol='WETH', name='Wrapped Ether', decimals=18)]
        )

    def test_missing_or_invalid_file_starts_empty(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            missing = Path(tmp) / 'missing.json'
            broken = Path(tmp) / 'broken.json'
            broken.write_text('{not json', encoding='utf-8')

            self.assertEqual(load_token_list(str(missing)), {})
            self.assertEqual(load_token_list(str(broken)), {})


class InMemoryStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.token = TokenDetails(address=WETH, id=0, symbol='WETH', name='Wrapped Ether', decimals=18)
        self.store = InMemoryTokenListStore({1: [self.token]})

    def test_get_tokens_returns_copy(self) -> None:
        tokens = self.store.get_tokens(1)
        tokens.clear()

        self.assertEqual(self.store.get_tokens(1), [self.token])
        self.assertEqual(self.store.get_tokens(5), [])

    def test_persist_overwrites_and_notifies(self) -> None:
        received = []
        unsubscribe = self.store.subscribe(lambda network_id, tokens: received.append((network_id, tokens)))

        self.store.persist_tokens(1, [])
        unsubscribe()
        unsubscribe()
        self.store.persist_tokens(1, [self.token])

        self.assertEqual(received, [(1, [])])
        self.assertEqual(self.store.get_tokens(1), [self.token])

    def test_failing_subscriber_does_not_block_others(self) -> None:
        received = []

        def broken(network_id, tokens) -> None:
            raise RuntimeError('ui went away')

        self.store.subscribe(broken)
        self.store.subscribe(lambda network_id, tokens: received.append(network_id))

        with self.assertLogs('apps.tokenlist.token_store', level='ERROR'):
            self.store.persist_tokens(1, [])

        self.assertEqual(received, [1])
