"""
Ledger access layer: abstract client, signing protocol and a JSON-RPC
implementation.
"""
from .client import (
    MISSING_ACCOUNT,
    AccountState,
    BatchStatusResult,
    LedgerClient,
    SignedBatch,
    Signer,
    SubmissionStatus,
)
from .rpc import JsonRpcLedgerClient

__all__ = [
    "MISSING_ACCOUNT",
    "AccountState",
    "BatchStatusResult",
    "JsonRpcLedgerClient",
    "LedgerClient",
    "SignedBatch",
    "Signer",
    "SubmissionStatus",
]
