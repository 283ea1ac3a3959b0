# authority.py

import logging

from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import AuthorityType, SetAuthorityParams, set_authority

from errors import AuthorityAlreadyRevokedError, AuthorityMismatchError
from ledger import Ledger
from wallet import parse_address

logger = logging.getLogger("authority")

MINT = "mint"
FREEZE = "freeze"

_AUTHORITY_TYPES = {
    MINT: AuthorityType.MINT_TOKENS,
    FREEZE: AuthorityType.FREEZE_ACCOUNT,
}


class AuthorityRevoker:
    def __init__(self, ledger: Ledger):
        self.ledger = ledger

    def revoke_mint_authority(self, mint_address: str) -> str:
        """Null the mint authority so the supply can never grow again."""
        return self._revoke(mint_address, MINT)

    def revoke_freeze_authority(self, mint_address: str) -> str:
        """Null the freeze authority so holder accounts can never be frozen."""
        return self._revoke(mint_address, FREEZE)

    def _revoke(self, mint_address: str, kind: str) -> str:
        mint = parse_address(mint_address, "mintAddress")
        state = self.ledger.read_mint(mint)
        current = state.mint_authority if kind == MINT else state.freeze_authority

        if current is None:
            raise AuthorityAlreadyRevokedError(f"The {kind} authority of {mint} has already been revoked.")
        wallet = self.ledger.wallet.pubkey
        if current != wallet:
            raise AuthorityMismatchError(
                f"The {kind} authority of {mint} is {current}, not the service wallet {wallet}."
            )

        logger.info(f"🔒 Revoking {kind} authority for mint: {mint}")
        signature = self.ledger.send(
            [
                set_authority(
                    SetAuthorityParams(
                        program_id=TOKEN_PROGRAM_ID,
                        account=mint,
                        authority=_AUTHORITY_TYPES[kind],
                        current_authority=wallet,
                        new_authority=None,
                    )
                )
            ]
        )
        logger.info(f"✅ {kind.capitalize()} authority revoked. Transaction: {signature}")
        return signature
