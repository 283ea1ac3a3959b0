# balance.py

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from amounts import format_token_amount
from ledger import ACCOUNT_STATE_INITIALIZED, Ledger
from wallet import ServiceWallet

logger = logging.getLogger("balance")

LAMPORTS_PER_SOL = 1_000_000_000


@dataclass(frozen=True)
class Holding:
    mint: str
    amount_raw: int
    decimals: int

    @property
    def amount(self) -> str:
        return format_token_amount(self.amount_raw, self.decimals)


@dataclass(frozen=True)
class WalletBalance:
    address: str
    lamports: int
    holdings: List[Holding] = field(default_factory=list)

    @property
    def sol(self) -> float:
        return self.lamports / LAMPORTS_PER_SOL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "serviceAddress": self.address,
            "address": self.address,
            "walletAddress": self.address,
            "sol": self.sol,
            "lamports": self.lamports,
            "tokens": [{"mint": h.mint, "amount": h.amount, "decimals": h.decimals} for h in self.holdings],
            "splTokens": [
                {"mint": h.mint, "amountRaw": str(h.amount_raw), "decimals": h.decimals} for h in self.holdings
            ],
        }


class BalanceReporter:
    """Reads the service wallet's SOL balance and its non-empty token accounts."""

    def __init__(self, ledger: Ledger, wallet: ServiceWallet):
        self.ledger = ledger
        self.wallet = wallet

    def get_balance(self) -> WalletBalance:
        owner = self.wallet.pubkey
        # A wallet that has never been funded reads as zero, not as an error.
        lamports = self.ledger.lamports(owner)
        accounts = self.ledger.token_accounts(owner)
        logger.debug(f"{len(accounts)} token account(s) returned for {owner}")

        decimals_by_mint = {}
        holdings = []
        for account in accounts:
            if account.state != ACCOUNT_STATE_INITIALIZED or account.amount <= 0:
                continue
            if account.mint not in decimals_by_mint:
                decimals_by_mint[account.mint] = self.ledger.read_mint(account.mint).decimals
            holdings.append(Holding(str(account.mint), account.amount, decimals_by_mint[account.mint]))

        logger.info(f"🪙 Service wallet {owner}: {lamports / LAMPORTS_PER_SOL} SOL, {len(holdings)} token holding(s)")
        return WalletBalance(address=str(owner), lamports=lamports, holdings=holdings)
