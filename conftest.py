# conftest.py

from types import SimpleNamespace

import pytest
import requests
from solana.rpc.core import RPCException
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction
from spl.token._layouts import ACCOUNT_LAYOUT, MINT_LAYOUT
from spl.token.constants import TOKEN_PROGRAM_ID

from ledger import Ledger
from wallet import ServiceWallet

RENT_EXEMPT_MINT = 1_461_600
EMPTY_KEY = bytes(32)


def mint_account(mint_authority=None, freeze_authority=None, decimals=9, supply=0):
    data = MINT_LAYOUT.build(
        dict(
            mint_authority_option=0 if mint_authority is None else 1,
            mint_authority=EMPTY_KEY if mint_authority is None else bytes(mint_authority),
            supply=supply,
            decimals=decimals,
            is_initialized=1,
            freeze_authority_option=0 if freeze_authority is None else 1,
            freeze_authority=EMPTY_KEY if freeze_authority is None else bytes(freeze_authority),
        )
    )
    return SimpleNamespace(owner=TOKEN_PROGRAM_ID, data=data)


def token_account(mint, owner, amount, state=1):
    data = ACCOUNT_LAYOUT.build(
        dict(
            mint=bytes(mint),
            owner=bytes(owner),
            amount=amount,
            delegate_option=0,
            delegate=EMPTY_KEY,
            state=state,
            is_native_option=0,
            is_native=0,
            delegated_amount=0,
            close_authority_option=0,
            close_authority=EMPTY_KEY,
        )
    )
    return SimpleNamespace(pubkey=Pubkey.new_unique(), account=SimpleNamespace(data=data))


def program_ids(txn: Transaction):
    keys = txn.message.account_keys
    return [keys[ix.program_id_index] for ix in txn.message.instructions]


class FakeRpcClient:
    """Stands in for solana.rpc.api.Client; answers from in-memory state."""

    def __init__(self):
        self.sent = []
        self.accounts = {}
        self.token_accounts = []
        self.lamports = 5 * 10**9
        self.fail_send_at = None
        self.fail_with = None
        self.missing_owner = False

    def get_latest_blockhash(self, commitment=None):
        return SimpleNamespace(value=SimpleNamespace(blockhash=Hash.default()))

    def send_raw_transaction(self, txn, opts=None):
        index = len(self.sent)
        transaction = Transaction.from_bytes(txn)
        if self.fail_send_at is not None and index == self.fail_send_at:
            if self.fail_with is not None:
                # reached the cluster, confirmation never came back
                self.sent.append(transaction)
                raise self.fail_with
            raise RPCException("Transaction simulation failed: custom program error: 0x1")
        self.sent.append(transaction)
        return SimpleNamespace(value=transaction.signatures[0])

    def get_minimum_balance_for_rent_exemption(self, size, commitment=None):
        return SimpleNamespace(value=RENT_EXEMPT_MINT)

    def get_balance(self, pubkey, commitment=None):
        return SimpleNamespace(value=self.lamports)

    def get_account_info(self, pubkey, commitment=None, encoding="base64", data_slice=None):
        return SimpleNamespace(value=self.accounts.get(pubkey))

    def get_token_accounts_by_owner(self, owner, opts, commitment=None, encoding="base64"):
        if self.missing_owner:
            raise RPCException(f"Invalid param: could not find account {owner}")
        return SimpleNamespace(value=list(self.token_accounts))

    def get_version(self):
        return SimpleNamespace(value=SimpleNamespace(solana_core="1.18.22"))


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    """Records requests instead of sending them."""

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def _answer(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0) if self.responses else FakeResponse(200, {})

    def post(self, url, **kwargs):
        return self._answer("POST", url, kwargs)

    def get(self, url, **kwargs):
        return self._answer("GET", url, kwargs)


def pinata_ok(ipfs_hash="QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"):
    return FakeResponse(200, {"IpfsHash": ipfs_hash, "PinSize": 1234, "Timestamp": "2026-10-19T00:00:00Z"})


@pytest.fixture
def wallet_keypair():
    return Keypair()


@pytest.fixture
def service_wallet(wallet_keypair):
    return ServiceWallet.from_keypair(wallet_keypair)


@pytest.fixture
def rpc():
    return FakeRpcClient()


@pytest.fixture
def ledger(rpc, service_wallet):
    return Ledger(rpc, service_wallet, "http://localhost:8899")
