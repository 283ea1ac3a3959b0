# create_token.py
#
# Mint sequence: create mint -> create associated account -> mint supply ->
# attach metadata. Also runnable from the shell to launch a token directly.

import argparse
import logging
import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from solders.compute_budget import set_compute_unit_limit
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account
from spl.token._layouts import MINT_LAYOUT
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    InitializeMintParams,
    MintToParams,
    create_associated_token_account,
    get_associated_token_address,
    initialize_mint,
    mint_to,
)

from amounts import parse_decimals, to_base_units
from errors import (
    AuthorityMismatchError,
    ConfirmationUnknownError,
    InsufficientFundsError,
    MintSequenceError,
    ValidationError,
)
from ledger import Ledger
from metaplex import (
    MAX_NAME_LENGTH,
    MAX_SYMBOL_LENGTH,
    MAX_URI_LENGTH,
    create_metadata_account_v3,
    find_metadata_address,
)
from wallet import parse_address

logger = logging.getLogger("create_token")

LAMPORTS_PER_SOL = 1_000_000_000
COMPUTE_UNIT_LIMIT = 300_000

STEP_CREATE_MINT = "create_mint"
STEP_CREATE_ASSOCIATED_ACCOUNT = "create_associated_account"
STEP_MINT_SUPPLY = "mint_supply"
STEP_ATTACH_METADATA = "attach_metadata"
STEP_CREATE_AND_MINT = "create_and_mint"

REQUIRED_FIELDS = ("name", "symbol", "uri", "supply", "decimals")


def validate_metadata_fields(name: str, symbol: str, uri: str) -> None:
    for field, value, limit in (
        ("name", name, MAX_NAME_LENGTH),
        ("symbol", symbol, MAX_SYMBOL_LENGTH),
        ("uri", uri, MAX_URI_LENGTH),
    ):
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{field} is required and must be a non-empty string.")
        if len(value.encode("utf-8")) > limit:
            raise ValidationError(f"{field} must be at most {limit} bytes.")


@dataclass(frozen=True)
class TokenCreationRequest:
    name: str
    symbol: str
    uri: str
    supply: str
    decimals: int
    base_units: int

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> "TokenCreationRequest":
        payload = payload or {}
        missing = [f for f in REQUIRED_FIELDS if payload.get(f) is None or str(payload.get(f)).strip() == ""]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}.")

        name = payload["name"].strip() if isinstance(payload["name"], str) else payload["name"]
        symbol = payload["symbol"].strip() if isinstance(payload["symbol"], str) else payload["symbol"]
        uri = payload["uri"].strip() if isinstance(payload["uri"], str) else payload["uri"]
        validate_metadata_fields(name, symbol, uri)

        supply = payload["supply"]
        if isinstance(supply, bool) or not isinstance(supply, (str, int)):
            raise ValidationError("supply must be a decimal string.")
        supply = str(supply).strip()
        decimals = parse_decimals(payload["decimals"])

        return cls(
            name=name,
            symbol=symbol,
            uri=uri,
            supply=supply,
            decimals=decimals,
            base_units=to_base_units(supply, decimals),
        )


@dataclass(frozen=True)
class TokenCreationResult:
    mint_address: Optional[str] = None
    associated_account_address: Optional[str] = None
    metadata_address: Optional[str] = None
    signatures: Tuple[str, ...] = ()
    completed_steps: Tuple[str, ...] = ()

    @property
    def transaction_signature(self) -> Optional[str]:
        return self.signatures[-1] if self.signatures else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mintAddress": self.mint_address,
            "ataAddress": self.associated_account_address,
            "metadataAddress": self.metadata_address,
            "signatures": list(self.signatures),
            "completedSteps": list(self.completed_steps),
        }


class MintOrchestrator:
    """Creates a metadata-bearing fungible token with the service wallet as every authority."""

    def __init__(self, ledger: Ledger, mode: str = "atomic", min_payer_lamports: int = 0):
        if mode not in ("atomic", "sequential"):
            raise ValueError(f"unknown mint mode: {mode}")
        self.ledger = ledger
        self.mode = mode
        self.min_payer_lamports = min_payer_lamports

    def create_token(self, request: TokenCreationRequest) -> TokenCreationResult:
        payer = self.ledger.wallet.pubkey
        self._check_payer_balance(payer)

        mint_keypair = Keypair()
        logger.info(
            f"👑 Creating token {request.symbol} ({request.base_units} base units, {request.decimals} decimals), "
            f"payer {payer}, mint {mint_keypair.pubkey()}, mode {self.mode}"
        )
        if self.mode == "atomic":
            return self._create_atomic(request, mint_keypair, payer)
        return self._create_sequential(request, mint_keypair, payer)

    def attach_metadata(self, mint_address: str, name: str, symbol: str, uri: str) -> Tuple[str, str]:
        validate_metadata_fields(name, symbol, uri)
        mint = parse_address(mint_address, "mintAddress")
        payer = self.ledger.wallet.pubkey

        state = self.ledger.read_mint(mint)
        if state.mint_authority != payer:
            raise AuthorityMismatchError(
                f"Metadata can only be attached by the mint authority; {payer} is not the mint authority of {mint}."
            )

        metadata_address = find_metadata_address(mint)
        signature = self.ledger.send([self._metadata_instruction(mint, payer, name, symbol, uri)])
        logger.info(f"✅ Metadata account {metadata_address} attached to {mint}: {signature}")
        return str(metadata_address), signature

    def _check_payer_balance(self, payer: Pubkey) -> None:
        if not self.min_payer_lamports:
            return
        lamports = self.ledger.lamports(payer)
        if lamports < self.min_payer_lamports:
            raise InsufficientFundsError(
                f"Not enough SOL on wallet {payer}: {lamports / LAMPORTS_PER_SOL} SOL, "
                f"at least {self.min_payer_lamports / LAMPORTS_PER_SOL} SOL is required."
            )

    def _create_atomic(self, request: TokenCreationRequest, mint_keypair: Keypair, payer: Pubkey) -> TokenCreationResult:
        mint = mint_keypair.pubkey()
        ata = get_associated_token_address(payer, mint)
        try:
            instructions = [
                set_compute_unit_limit(COMPUTE_UNIT_LIMIT),
                *self._mint_account_instructions(mint, payer, request.decimals),
                create_associated_token_account(payer, payer, mint),
                self._mint_to_instruction(mint, ata, payer, request.base_units),
                self._metadata_instruction(mint, payer, request.name, request.symbol, request.uri),
            ]
            signature = self.ledger.send(instructions, [mint_keypair])
        except ConfirmationUnknownError as e:
            logger.warning(f"⚠️ Outcome unknown for token {mint}: transaction {e.signature} sent but not confirmed")
            partial = TokenCreationResult(
                mint_address=str(mint),
                associated_account_address=str(ata),
                metadata_address=str(find_metadata_address(mint)),
                signatures=(e.signature,),
            )
            raise MintSequenceError(STEP_CREATE_AND_MINT, partial, e)
        except Exception as e:
            logger.error(f"😿 Atomic token creation failed, nothing was created: {e}")
            raise MintSequenceError(STEP_CREATE_AND_MINT, TokenCreationResult(), e)

        logger.info(f"✅ Token {mint} created and minted in one transaction: {signature}")
        return TokenCreationResult(
            mint_address=str(mint),
            associated_account_address=str(ata),
            metadata_address=str(find_metadata_address(mint)),
            signatures=(signature,),
            completed_steps=(STEP_CREATE_AND_MINT,),
        )

    def _create_sequential(self, request: TokenCreationRequest, mint_keypair: Keypair, payer: Pubkey) -> TokenCreationResult:
        mint = mint_keypair.pubkey()
        ata = get_associated_token_address(payer, mint)
        metadata_address = find_metadata_address(mint)

        # Each step reads state created by the previous one, so every
        # transaction is confirmed before the next is built.
        steps = [
            (STEP_CREATE_MINT, lambda: self._mint_account_instructions(mint, payer, request.decimals), [mint_keypair]),
            (STEP_CREATE_ASSOCIATED_ACCOUNT, lambda: [create_associated_token_account(payer, payer, mint)], []),
            (STEP_MINT_SUPPLY, lambda: [self._mint_to_instruction(mint, ata, payer, request.base_units)], []),
            (
                STEP_ATTACH_METADATA,
                lambda: [self._metadata_instruction(mint, payer, request.name, request.symbol, request.uri)],
                [],
            ),
        ]
        addresses = {
            STEP_CREATE_MINT: ("mint_address", str(mint)),
            STEP_CREATE_ASSOCIATED_ACCOUNT: ("associated_account_address", str(ata)),
            STEP_ATTACH_METADATA: ("metadata_address", str(metadata_address)),
        }

        completed = {}
        signatures = []
        for number, (step, build, signers) in enumerate(steps, start=1):
            logger.info(f"🚀 Step {number}/{len(steps)}: {step}...")
            try:
                signature = self.ledger.send(build(), signers)
            except Exception as e:
                logger.error(f"😿 Step {number} ({step}) failed after {len(signatures)} confirmed step(s): {e}")
                raise MintSequenceError(step, _result(completed, signatures), e)
            signatures.append(signature)
            completed[step] = addresses.get(step)
            logger.info(f"✅ Step {number} confirmed: {signature}")

        return _result(completed, signatures)

    def _mint_account_instructions(self, mint: Pubkey, payer: Pubkey, decimals: int):
        lamports = self.ledger.rent_exempt_lamports(MINT_LAYOUT.sizeof())
        return [
            create_account(
                CreateAccountParams(
                    from_pubkey=payer,
                    to_pubkey=mint,
                    lamports=lamports,
                    space=MINT_LAYOUT.sizeof(),
                    owner=TOKEN_PROGRAM_ID,
                )
            ),
            initialize_mint(
                InitializeMintParams(
                    decimals=decimals,
                    program_id=TOKEN_PROGRAM_ID,
                    mint=mint,
                    mint_authority=payer,
                    freeze_authority=payer,
                )
            ),
        ]

    @staticmethod
    def _mint_to_instruction(mint: Pubkey, dest: Pubkey, authority: Pubkey, amount: int):
        return mint_to(
            MintToParams(
                program_id=TOKEN_PROGRAM_ID,
                mint=mint,
                dest=dest,
                mint_authority=authority,
                amount=amount,
            )
        )

    @staticmethod
    def _metadata_instruction(mint: Pubkey, authority: Pubkey, name: str, symbol: str, uri: str):
        return create_metadata_account_v3(
            metadata=find_metadata_address(mint),
            mint=mint,
            mint_authority=authority,
            payer=authority,
            update_authority=authority,
            name=name,
            symbol=symbol,
            uri=uri,
            is_mutable=True,
        )


def _result(completed, signatures) -> TokenCreationResult:
    fields = dict(value for value in completed.values() if value)
    return TokenCreationResult(signatures=tuple(signatures), completed_steps=tuple(completed), **fields)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create an SPL token with metadata using the service wallet.")
    parser.add_argument("--name", required=True)
    parser.add_argument("--symbol", required=True)
    parser.add_argument("--uri", required=True, help="URI of the off-chain metadata JSON")
    parser.add_argument("--supply", required=True)
    parser.add_argument("--decimals", default="9")
    parser.add_argument("--mode", choices=("atomic", "sequential"), help="overrides MINT_MODE")
    args = parser.parse_args(argv)

    from app import build_services
    from config import Settings
    from errors import TokenServiceError

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    settings = Settings.from_env()
    services = build_services(settings)
    orchestrator = services.orchestrator
    if args.mode:
        orchestrator = MintOrchestrator(services.ledger, args.mode, orchestrator.min_payer_lamports)

    try:
        request = TokenCreationRequest.from_payload(vars(args))
        result = orchestrator.create_token(request)
    except MintSequenceError as e:
        print(f"😿 {e.message}")
        print(f"Partial result: {e.partial.to_dict()}")
        return 1
    except TokenServiceError as e:
        print(f"😿 {e.message}")
        return 1

    print(f"🎉 Token created! Mint address: {result.mint_address}")
    print(f"Associated account: {result.associated_account_address}")
    print(f"Metadata account: {result.metadata_address}")
    for signature in result.signatures:
        print(f"Transaction: {signature}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
