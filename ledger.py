# ledger.py

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from solana.exceptions import SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException, TransactionExpiredBlockheightExceededError, UnconfirmedTxError
from solana.rpc.types import TokenAccountOpts, TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction
from spl.token._layouts import ACCOUNT_LAYOUT, MINT_LAYOUT
from spl.token.constants import TOKEN_PROGRAM_ID

from errors import ConfirmationUnknownError, UpstreamError, ValidationError
from wallet import ServiceWallet

logger = logging.getLogger("ledger")

LEDGER_ERRORS = (RPCException, SolanaRpcException, UnconfirmedTxError, TransactionExpiredBlockheightExceededError)

ACCOUNT_STATE_INITIALIZED = 1


def is_missing_account(exc: Exception) -> bool:
    message = str(exc).lower()
    return "could not find account" in message or "account not found" in message


@dataclass(frozen=True)
class MintState:
    address: Pubkey
    mint_authority: Optional[Pubkey]
    freeze_authority: Optional[Pubkey]
    supply: int
    decimals: int
    is_initialized: bool


@dataclass(frozen=True)
class TokenAccountState:
    address: Pubkey
    mint: Pubkey
    owner: Pubkey
    amount: int
    state: int


class Ledger:
    """Everything the service asks of the RPC endpoint goes through here."""

    def __init__(self, client: Client, wallet: ServiceWallet, endpoint: str = ""):
        self.client = client
        self.wallet = wallet
        self.endpoint = endpoint

    def send(self, instructions: Sequence[Instruction], extra_signers: Sequence[Keypair] = ()) -> str:
        """Sign with the service wallet (payer) plus extra signers, send, and wait for confirmation."""
        payer = self.wallet.keypair
        try:
            blockhash = self.client.get_latest_blockhash(commitment=Confirmed).value.blockhash
            txn = Transaction.new_signed_with_payer(
                list(instructions), payer.pubkey(), [payer, *extra_signers], blockhash
            )
            resp = self.client.send_raw_transaction(
                bytes(txn), opts=TxOpts(skip_confirmation=False, preflight_commitment=Confirmed)
            )
        except (UnconfirmedTxError, TransactionExpiredBlockheightExceededError) as e:
            signature = str(txn.signatures[0])
            raise ConfirmationUnknownError(f"Transaction {signature} was sent but not confirmed: {e}", signature)
        except LEDGER_ERRORS as e:
            raise UpstreamError(f"Transaction failed: {e}")
        return str(resp.value)

    def lamports(self, address: Pubkey) -> int:
        try:
            return self.client.get_balance(address, commitment=Confirmed).value
        except LEDGER_ERRORS as e:
            if is_missing_account(e):
                return 0
            raise UpstreamError(f"Failed to fetch balance of {address}: {e}")

    def rent_exempt_lamports(self, size: int) -> int:
        try:
            return self.client.get_minimum_balance_for_rent_exemption(size).value
        except LEDGER_ERRORS as e:
            raise UpstreamError(f"Failed to fetch rent exemption: {e}")

    def version(self) -> str:
        try:
            return self.client.get_version().value.solana_core
        except LEDGER_ERRORS as e:
            raise UpstreamError(f"Solana connection failed: {e}")

    def read_mint(self, address: Pubkey) -> MintState:
        try:
            value = self.client.get_account_info(address, commitment=Confirmed).value
        except LEDGER_ERRORS as e:
            raise UpstreamError(f"Failed to fetch mint {address}: {e}")
        if value is None:
            raise ValidationError(f"Mint account not found: {address}")
        if value.owner != TOKEN_PROGRAM_ID or len(value.data) != MINT_LAYOUT.sizeof():
            raise ValidationError(f"Account {address} is not an SPL token mint")

        decoded = MINT_LAYOUT.parse(bytes(value.data))
        return MintState(
            address=address,
            mint_authority=Pubkey(decoded.mint_authority) if decoded.mint_authority_option else None,
            freeze_authority=Pubkey(decoded.freeze_authority) if decoded.freeze_authority_option else None,
            supply=decoded.supply,
            decimals=decoded.decimals,
            is_initialized=bool(decoded.is_initialized),
        )

    def token_accounts(self, owner: Pubkey) -> List[TokenAccountState]:
        try:
            resp = self.client.get_token_accounts_by_owner(
                owner, TokenAccountOpts(program_id=TOKEN_PROGRAM_ID), commitment=Confirmed
            )
        except LEDGER_ERRORS as e:
            if is_missing_account(e):
                return []
            raise UpstreamError(f"Failed to fetch token accounts of {owner}: {e}")

        accounts = []
        for keyed in resp.value:
            decoded = ACCOUNT_LAYOUT.parse(bytes(keyed.account.data))
            accounts.append(
                TokenAccountState(
                    address=keyed.pubkey,
                    mint=Pubkey(decoded.mint),
                    owner=Pubkey(decoded.owner),
                    amount=decoded.amount,
                    state=decoded.state,
                )
            )
        return accounts
