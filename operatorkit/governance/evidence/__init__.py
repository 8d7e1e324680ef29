"""Append-only evidence ledger for routing and decision events."""

from .ledger import GENESIS_HASH, EvidenceLedger, chain_hash_of

__all__ = ["EvidenceLedger", "GENESIS_HASH", "chain_hash_of"]
