"""
JSON-RPC Ledger Client Unit Tests
Tests for ledger/rpc.py

The HTTP session is a unittest.mock stand-in; no network is used.
"""
from unittest.mock import MagicMock

import pytest
import requests

from core.config.runtime import LedgerConfig
from core.schemas.errors import LedgerException
from ledger.client import MISSING_ACCOUNT, SignedBatch, SubmissionStatus
from ledger.rpc import JsonRpcLedgerClient

from fixtures import make_key


def _response(status_code=200, body=None, json_error=False):
    response = MagicMock()
    response.status_code = status_code
    if json_error:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = body
    return response


def _client(*responses):
    session = MagicMock()
    session.post.side_effect = list(responses)
    client = JsonRpcLedgerClient(LedgerConfig(rpc_url="https://rpc.test", timeout=5.0), session=session)
    return client, session


def _ok(result):
    return _response(body={"jsonrpc": "2.0", "id": 1, "result": result})


class TestCall:
    """Request shape and error mapping."""

    def test_request_payload(self):
        client, session = _client(_ok({"token": "t-1"}), _ok({"token": "t-2"}))
        assert client.get_sequencing_token() == "t-1"
        client.get_sequencing_token()

        first, second = session.post.call_args_list
        assert first.args[0] == "https://rpc.test"
        assert first.kwargs["timeout"] == 5.0
        assert first.kwargs["json"]["method"] == "getSequencingToken"
        assert first.kwargs["json"]["jsonrpc"] == "2.0"
        assert second.kwargs["json"]["id"] == first.kwargs["json"]["id"] + 1

    @pytest.mark.parametrize("status_code", [429, 500, 502, 503, 504])
    def test_retryable_http(self, status_code):
        client, _ = _client(_response(status_code=status_code))
        with pytest.raises(LedgerException) as exc:
            client.get_sequencing_token()
        assert exc.value.retryable

    def test_client_error_not_retryable(self):
        client, _ = _client(_response(status_code=400))
        with pytest.raises(LedgerException) as exc:
            client.get_sequencing_token()
        assert not exc.value.retryable

    def test_timeout_retryable(self):
        client, session = _client()
        session.post.side_effect = requests.Timeout("slow")
        with pytest.raises(LedgerException, match="timed out") as exc:
            client.get_sequencing_token()
        assert exc.value.retryable

    def test_connection_error_retryable(self):
        client, session = _client()
        session.post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(LedgerException, match="transport error") as exc:
            client.get_sequencing_token()
        assert exc.value.retryable

    def test_rpc_error_not_retryable(self):
        client, _ = _client(_response(body={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "bad sig"}}))
        with pytest.raises(LedgerException, match="bad sig") as exc:
            client.get_sequencing_token()
        assert not exc.value.retryable

    def test_invalid_json(self):
        client, _ = _client(_response(json_error=True))
        with pytest.raises(LedgerException, match="invalid JSON"):
            client.get_sequencing_token()

    def test_missing_result(self):
        client, _ = _client(_response(body={"jsonrpc": "2.0", "id": 1}))
        with pytest.raises(LedgerException, match="no result"):
            client.get_sequencing_token()

    def test_missing_field(self):
        client, _ = _client(_ok({}))
        with pytest.raises(LedgerException, match="missing 'token'"):
            client.get_sequencing_token()


class TestMethods:
    """Typed wrappers over the RPC methods."""

    def test_submit_batch(self):
        client, session = _client(_ok({"submissionId": "sub-1"}))
        batch = SignedBatch(
            batch_index=3,
            sequencing_token="t",
            message="{}",
            signer=str(make_key("signer")),
            signature="ab",
        )
        assert client.submit_batch(batch) == "sub-1"
        params = session.post.call_args.kwargs["json"]["params"]
        assert params == [batch.model_dump(mode="json")]

    def test_batch_status(self):
        client, _ = _client(_ok({"status": "confirmed", "confirmationId": "sig"}))
        status = client.get_batch_status("sub-1")
        assert status.status is SubmissionStatus.CONFIRMED
        assert status.confirmation_id == "sig"

    def test_unknown_status(self):
        client, _ = _client(_ok({"status": "exploded"}))
        with pytest.raises(LedgerException, match="Unknown batch status"):
            client.get_batch_status("sub-1")

    def test_account(self):
        client, session = _client(_ok({"balance": 2**64 - 1, "active": True}))
        address = make_key("vault")
        state = client.get_account(address)
        assert state.exists and state.active
        assert state.balance == 2**64 - 1
        assert session.post.call_args.kwargs["json"]["params"] == [str(address)]

    def test_missing_account(self):
        client, _ = _client(_ok(None))
        assert client.get_account(make_key("nobody")) is MISSING_ACCOUNT

    def test_close(self):
        client, session = _client()
        client.close()
        session.close.assert_called_once()
