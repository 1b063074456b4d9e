"""
JSON-RPC Ledger Client

LedgerClient over HTTP JSON-RPC 2.0 using requests.

Methods called on the endpoint:

    getSequencingToken  []                  -> {"token": str}
    submitBatch         [SignedBatch]       -> {"submissionId": str}
    getBatchStatus      [submission_id]     -> {"status": str, "confirmationId": str?, "error": str?}
    getAccount          [address]           -> null | {"balance": int, "active": bool}

Transport failures, timeouts and 5xx/429 responses raise a retryable
LedgerException. JSON-RPC errors and malformed responses raise a
non-retryable one.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Optional

import requests

from core.config.runtime import LedgerConfig
from core.crypto.identity import PublicKey
from core.schemas.errors import LedgerException
from ledger.client import (
    MISSING_ACCOUNT,
    AccountState,
    BatchStatusResult,
    LedgerClient,
    SignedBatch,
    SubmissionStatus,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class JsonRpcLedgerClient(LedgerClient):
    """
    Ledger client for a JSON-RPC endpoint.

    Usage:
        client = JsonRpcLedgerClient(LedgerConfig(rpc_url="https://rpc.example"))
        token = client.get_sequencing_token()
    """

    def __init__(
        self,
        config: Optional[LedgerConfig] = None,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Args:
            config: Endpoint URL, timeout and user agent
            session: Pre-built session (tests inject a mock here)
        """
        self.config = config or LedgerConfig()
        self._session = session
        self._ids = itertools.count(1)
        self._id_lock = threading.Lock()

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({
                "Content-Type": "application/json",
                "User-Agent": self.config.user_agent,
            })
        return self._session

    def _next_id(self) -> int:
        with self._id_lock:
            return next(self._ids)

    def call(self, method: str, params: list[Any]) -> Any:
        """
        Perform one JSON-RPC call and return its result.

        Raises:
            LedgerException: transport, HTTP, JSON-RPC or decoding failure
        """
        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id(),
            "method": method,
            "params": params,
        }
        try:
            response = self._get_session().post(
                self.config.rpc_url,
                json=payload,
                timeout=self.config.timeout,
            )
        except requests.Timeout as e:
            raise LedgerException(f"{method} timed out: {e}", details={"method": method}) from e
        except requests.RequestException as e:
            raise LedgerException(f"{method} transport error: {e}", details={"method": method}) from e

        if response.status_code in RETRYABLE_STATUS_CODES:
            raise LedgerException(
                f"{method} returned HTTP {response.status_code}",
                details={"method": method, "status_code": response.status_code},
            )
        if not 200 <= response.status_code < 300:
            raise LedgerException(
                f"{method} returned HTTP {response.status_code}",
                retryable=False,
                details={"method": method, "status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise LedgerException(
                f"{method} returned invalid JSON", retryable=False, details={"method": method}
            ) from e

        if not isinstance(body, dict):
            raise LedgerException(
                f"{method} returned a non-object response", retryable=False, details={"method": method}
            )
        error = body.get("error")
        if error:
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise LedgerException(
                f"{method} failed: {message}",
                retryable=False,
                details={"method": method, "error": error},
            )
        if "result" not in body:
            raise LedgerException(
                f"{method} response has no result", retryable=False, details={"method": method}
            )
        return body["result"]

    @staticmethod
    def _field(result: Any, key: str, method: str) -> Any:
        if not isinstance(result, dict) or key not in result:
            raise LedgerException(
                f"{method} result is missing '{key}'", retryable=False, details={"method": method}
            )
        return result[key]

    def get_sequencing_token(self) -> str:
        result = self.call("getSequencingToken", [])
        return str(self._field(result, "token", "getSequencingToken"))

    def submit_batch(self, batch: SignedBatch) -> str:
        result = self.call("submitBatch", [batch.model_dump(mode="json")])
        submission_id = str(self._field(result, "submissionId", "submitBatch"))
        logger.debug("Batch %d submitted as %s", batch.batch_index, submission_id)
        return submission_id

    def get_batch_status(self, submission_id: str) -> BatchStatusResult:
        result = self.call("getBatchStatus", [submission_id])
        raw_status = self._field(result, "status", "getBatchStatus")
        try:
            status = SubmissionStatus(raw_status)
        except ValueError as e:
            raise LedgerException(
                f"Unknown batch status {raw_status!r}", retryable=False
            ) from e
        return BatchStatusResult(
            status=status,
            confirmation_id=result.get("confirmationId"),
            error=result.get("error"),
        )

    def get_account(self, address: PublicKey) -> AccountState:
        result = self.call("getAccount", [str(address)])
        if result is None:
            return MISSING_ACCOUNT
        balance = self._field(result, "balance", "getAccount")
        return AccountState(
            exists=True,
            balance=int(balance),
            active=bool(result.get("active", False)),
        )

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None


__all__ = ["JsonRpcLedgerClient", "RETRYABLE_STATUS_CODES"]
