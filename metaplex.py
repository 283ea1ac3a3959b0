# metaplex.py
#
# Instruction builder for the Metaplex Token Metadata program. Borsh layouts
# are declared with construct, the same way spl.token._layouts does.

from construct import Flag, Int8ul, Int16ul, Int32ul, PascalString, Struct
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYS_PROGRAM_ID
from solders.sysvar import RENT

TOKEN_METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")

CREATE_METADATA_ACCOUNT_V3 = 33

MAX_NAME_LENGTH = 32
MAX_SYMBOL_LENGTH = 10
MAX_URI_LENGTH = 200

BORSH_STRING = PascalString(Int32ul, "utf8")

# creators, collection and uses are always written as None.
DATA_V2_LAYOUT = Struct(
    "name" / BORSH_STRING,
    "symbol" / BORSH_STRING,
    "uri" / BORSH_STRING,
    "seller_fee_basis_points" / Int16ul,
    "creators_option" / Int8ul,
    "collection_option" / Int8ul,
    "uses_option" / Int8ul,
)

CREATE_METADATA_ACCOUNT_V3_LAYOUT = Struct(
    "instruction" / Int8ul,
    "data" / DATA_V2_LAYOUT,
    "is_mutable" / Flag,
    "collection_details_option" / Int8ul,
)


def find_metadata_address(mint: Pubkey) -> Pubkey:
    address, _ = Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint)],
        TOKEN_METADATA_PROGRAM_ID,
    )
    return address


def create_metadata_account_v3(
    metadata: Pubkey,
    mint: Pubkey,
    mint_authority: Pubkey,
    payer: Pubkey,
    update_authority: Pubkey,
    name: str,
    symbol: str,
    uri: str,
    is_mutable: bool = True,
) -> Instruction:
    data = CREATE_METADATA_ACCOUNT_V3_LAYOUT.build(
        dict(
            instruction=CREATE_METADATA_ACCOUNT_V3,
            data=dict(
                name=name,
                symbol=symbol,
                uri=uri,
                seller_fee_basis_points=0,
                creators_option=0,
                collection_option=0,
                uses_option=0,
            ),
            is_mutable=is_mutable,
            collection_details_option=0,
        )
    )
    accounts = [
        AccountMeta(pubkey=metadata, is_signer=False, is_writable=True),
        AccountMeta(pubkey=mint, is_signer=False, is_writable=False),
        AccountMeta(pubkey=mint_authority, is_signer=True, is_writable=False),
        AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
        AccountMeta(pubkey=update_authority, is_signer=True, is_writable=False),
        AccountMeta(pubkey=SYS_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(pubkey=RENT, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id=TOKEN_METADATA_PROGRAM_ID, data=data, accounts=accounts)
