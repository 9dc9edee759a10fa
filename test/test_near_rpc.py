import base64
import hashlib
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from nacl.signing import VerifyKey

from bridge_driver.connectors.common import build_near_execution_proof
from bridge_driver.errors import (
    ConfigurationError,
    ErrorKind,
    FinalizationTimeoutError,
    LightClientLagError,
    NearRpcError,
    ProofSerializeError,
)
from bridge_driver.near_rpc import NearRpcClient
from bridge_driver.utils.near_signer import NearSigner
from conftest import b58, make_near_proof_json, near_secret_key

HANDLER_ERROR = {
    "name": "HANDLER_ERROR",
    "cause": {"name": "UNKNOWN_TRANSACTION", "info": {}},
    "code": -32000,
    "message": "Server error",
}

FINAL_OUTCOME = {
    "status": {"SuccessValue": ""},
    "transaction": {},
    "transaction_outcome": {},
    "receipts_outcome": [{"id": "x", "outcome": {"logs": []}}],
}


class NearStub:
    """Serves canned answers per method; a list answers successive calls in order."""

    def __init__(self, answers: dict):
        self.answers = answers
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.calls.append(payload)
        answer = self.answers[payload["method"]]
        if isinstance(answer, list):
            answer = answer.pop(0)
        body = {"jsonrpc": "2.0", "id": payload["id"]}
        if isinstance(answer, dict) and answer.get("name") == "HANDLER_ERROR":
            body["error"] = answer
        else:
            body["result"] = answer
        return httpx.Response(200, json=body)

    def client(self, **kwargs) -> NearRpcClient:
        return NearRpcClient("https://near.test", transport=httpx.MockTransport(self), **kwargs)


def fake_clock(*times):
    return MagicMock(side_effect=list(times))


@pytest.mark.asyncio
async def test_view_encodes_args_and_returns_bytes():
    stub = NearStub({"query": {"result": list(b'{"a":1}'), "logs": [], "block_height": 1}})
    async with stub.client() as client:
        assert await client.view_json("fast.testnet", "get_pending_transfer", {"id": "7"}) == {"a": 1}

    params = stub.calls[0]["params"]
    assert params["request_type"] == "call_function"
    assert params["finality"] == "final"
    assert params["method_name"] == "get_pending_transfer"
    assert json.loads(base64.b64decode(params["args_base64"])) == {"id": "7"}


@pytest.mark.asyncio
async def test_query_error_inside_result():
    stub = NearStub({"query": {"error": "wasm execution failed", "logs": []}})
    async with stub.client() as client:
        with pytest.raises(NearRpcError, match="wasm execution failed"):
            await client.view("fast.testnet", "get_pending_transfer", {})


@pytest.mark.asyncio
async def test_change_signs_and_broadcasts():
    signer = NearSigner("relayer.testnet", near_secret_key())
    block_hash = b"\x07" * 32
    stub = NearStub({
        "query": {"nonce": 41, "block_hash": b58(block_hash), "permission": "FullAccess"},
        "broadcast_tx_async": "9dTxHash",
    })
    async with stub.client(signer=signer) as client:
        tx_hash = await client.change("locker.testnet", "withdraw", b"\x01\x02", 300 * 10**12, 1)

    assert tx_hash == "9dTxHash"
    access_key_query = stub.calls[0]["params"]
    assert access_key_query["request_type"] == "view_access_key"
    assert access_key_query["public_key"] == signer.public_key

    signed = base64.b64decode(stub.calls[1]["params"][0])
    transaction, signature = signed[:-65], signed[-64:]
    assert signed[-65] == 0
    VerifyKey(signer.public_key_bytes).verify(hashlib.sha256(transaction).digest(), signature)

    nonce_offset = 4 + len("relayer.testnet") + 1 + 32
    assert int.from_bytes(transaction[nonce_offset:nonce_offset + 8], "little") == 42
    assert block_hash in transaction


@pytest.mark.asyncio
async def test_change_without_signer():
    async with NearStub({}).client() as client:
        with pytest.raises(ConfigurationError, match="signer is required"):
            await client.change("locker.testnet", "withdraw", b"", 1, 0)


@pytest.mark.asyncio
async def test_tx_status_handler_error_is_pending():
    stub = NearStub({"tx": HANDLER_ERROR})
    async with stub.client() as client:
        assert await client.tx_status("TxHash", "relayer.testnet") is None
    assert stub.calls[0]["params"]["wait_until"] == "EXECUTED"


@pytest.mark.asyncio
async def test_tx_status_other_errors_propagate():
    def handler(request):
        payload = json.loads(request.content)
        return httpx.Response(200, json={
            "jsonrpc": "2.0", "id": payload["id"],
            "error": {"name": "REQUEST_VALIDATION_ERROR", "cause": {"name": "PARSE_ERROR"}},
        })

    async with NearRpcClient("https://near.test", transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(NearRpcError) as exc_info:
            await client.tx_status("TxHash", "relayer.testnet")
    assert exc_info.value.name == "REQUEST_VALIDATION_ERROR"
    assert not exc_info.value.is_handler_error


@pytest.mark.asyncio
async def test_tx_status_incomplete_outcome_is_pending():
    stub = NearStub({"tx": {"status": {"SuccessValue": ""}}})
    async with stub.client() as client:
        assert await client.tx_status("TxHash", "relayer.testnet") is None


@pytest.mark.asyncio
async def test_wait_for_final_outcome_polls_until_available():
    stub = NearStub({"tx": [HANDLER_ERROR, HANDLER_ERROR, FINAL_OUTCOME]})
    async with stub.client() as client:
        client.clock = fake_clock(0.0, 2.0, 4.0)
        client.sleep = AsyncMock()
        outcome = await client.wait_for_tx_final_outcome("TxHash", "relayer.testnet")

    assert outcome == FINAL_OUTCOME
    assert client.sleep.await_count == 2
    client.sleep.assert_awaited_with(2.0)


@pytest.mark.asyncio
async def test_wait_for_final_outcome_times_out():
    stub = NearStub({"tx": [HANDLER_ERROR, HANDLER_ERROR]})
    async with stub.client() as client:
        client.clock = fake_clock(0.0, 250.0, 500.0)
        client.sleep = AsyncMock()
        with pytest.raises(FinalizationTimeoutError, match="no final outcome after 500s"):
            await client.wait_for_tx_final_outcome("TxHash", "relayer.testnet")
    assert client.sleep.await_count == 1


@pytest.mark.asyncio
async def test_change_and_wait_for_outcome():
    signer = NearSigner("relayer.testnet", near_secret_key())
    stub = NearStub({
        "query": {"nonce": 1, "block_hash": b58(b"\x07" * 32)},
        "broadcast_tx_async": "9dTxHash",
        "tx": [HANDLER_ERROR, FINAL_OUTCOME],
    })
    async with stub.client(signer=signer) as client:
        client.sleep = AsyncMock()
        outcome = await client.change_and_wait_for_outcome(
            "locker.testnet", "sign_transfer", {"nonce": "1"}, 300 * 10**12, 0
        )

    assert outcome == FINAL_OUTCOME
    tx_params = stub.calls[-1]["params"]
    assert tx_params["tx_hash"] == "9dTxHash"
    assert tx_params["sender_account_id"] == "relayer.testnet"


@pytest.mark.asyncio
async def test_light_client_proof_request():
    stub = NearStub({"light_client_proof": make_near_proof_json(height=77)})
    head = b"\x42" * 32
    async with stub.client() as client:
        proof = await client.get_light_client_proof("ReceiptId", "locker.testnet", head)

    assert proof.height == 77
    assert stub.calls[0]["params"] == {
        "type": "receipt",
        "receipt_id": "ReceiptId",
        "receiver_id": "locker.testnet",
        "light_client_head": b58(head),
    }


@pytest.mark.asyncio
async def test_light_client_proof_with_failed_outcome():
    stub = NearStub({"light_client_proof": make_near_proof_json(status={"Failure": {}})})
    async with stub.client() as client:
        with pytest.raises(ProofSerializeError):
            await client.get_light_client_proof("ReceiptId", "locker.testnet", b"\x42" * 32)


@pytest.mark.asyncio
async def test_block_helpers():
    stub = NearStub({"block": [
        {"header": {"height": 10, "timestamp": 1700000000000000000}},
        {"header": {"height": 12}},
    ]})
    async with stub.client() as client:
        assert await client.get_final_block_timestamp() == 1700000000000000000
        assert await client.get_last_block_height() == 12
    assert stub.calls[0]["params"] == {"finality": "final"}
    assert stub.calls[1]["params"] == {"finality": "optimistic"}


NOT_CONFIRMED_ERROR = {
    "name": "HANDLER_ERROR",
    "cause": {"name": "NOT_CONFIRMED", "info": {"transaction_or_receipt_id": "ReceiptId"}},
    "code": -32000,
    "message": "Server error",
}


@pytest.mark.asyncio
async def test_light_client_proof_not_confirmed_under_head():
    stub = NearStub({"light_client_proof": NOT_CONFIRMED_ERROR})
    async with stub.client() as client:
        with pytest.raises(NearRpcError) as exc_info:
            await client.get_light_client_proof("ReceiptId", "locker.testnet", b"\x42" * 32)
    assert exc_info.value.cause_name == "NOT_CONFIRMED"


@pytest.mark.asyncio
async def test_unconfirmed_receipt_is_light_client_lag():
    light_client = MagicMock()
    light_client.get_head = AsyncMock(return_value=(5, b"\x42" * 32))
    stub = NearStub({"light_client_proof": NOT_CONFIRMED_ERROR})

    async with stub.client() as client:
        with pytest.raises(LightClientLagError) as exc_info:
            await build_near_execution_proof(light_client, client, b58(b"\x21" * 32), "aurora.testnet")

    assert exc_info.value.kind is ErrorKind.LIGHT_CLIENT_LAG
    assert exc_info.value.sync_height == 5
    assert exc_info.value.required_height is None
    assert stub.calls[0]["params"]["light_client_head"] == b58(b"\x42" * 32)


@pytest.mark.asyncio
async def test_other_proof_errors_stay_rpc_errors():
    light_client = MagicMock()
    light_client.get_head = AsyncMock(return_value=(5, b"\x42" * 32))
    unknown_block = {**NOT_CONFIRMED_ERROR, "cause": {"name": "UNKNOWN_BLOCK", "info": {}}}
    stub = NearStub({"light_client_proof": unknown_block})

    async with stub.client() as client:
        with pytest.raises(NearRpcError) as exc_info:
            await build_near_execution_proof(light_client, client, b58(b"\x21" * 32), "aurora.testnet")
    assert exc_info.value.cause_name == "UNKNOWN_BLOCK"
