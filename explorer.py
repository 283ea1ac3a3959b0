# explorer.py

from typing import Union

import base58

MAINNET = "mainnet-beta"


def format_signature(signature: Union[bytes, bytearray, str, object]) -> str:
    """Base58 text for a signature given as raw bytes, a string or a solders Signature."""
    if isinstance(signature, str):
        return signature
    if isinstance(signature, (bytes, bytearray)):
        return base58.b58encode(bytes(signature)).decode("ascii")
    return str(signature)


def _cluster_query(cluster: str) -> str:
    if not cluster or cluster == MAINNET:
        return ""
    return f"?cluster={cluster}"


def solana_tx_url(signature, cluster: str = "devnet") -> str:
    return f"https://explorer.solana.com/tx/{format_signature(signature)}{_cluster_query(cluster)}"


def solana_address_url(address: str, cluster: str = "devnet") -> str:
    return f"https://explorer.solana.com/address/{address}{_cluster_query(cluster)}"


def solscan_tx_url(signature, cluster: str = "devnet") -> str:
    return f"https://solscan.io/tx/{format_signature(signature)}{_cluster_query(cluster)}"


def solscan_token_url(mint_address: str, cluster: str = "devnet") -> str:
    return f"https://solscan.io/token/{mint_address}{_cluster_query(cluster)}"
