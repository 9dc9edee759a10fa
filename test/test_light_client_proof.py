import copy

import pytest

from bridge_driver.errors import ProofSerializeError
from bridge_driver.light_client_proof import (
    Direction,
    ExecutionStatusKind,
    LightClientExecutionProof,
)
from conftest import b58, load_light_client_vectors, make_near_proof_json

VECTORS = load_light_client_vectors()


@pytest.mark.parametrize("data", VECTORS, ids=["vector-0", "vector-1", "vector-2"])
def test_recorded_proofs_decode_and_reencode(data):
    proof = LightClientExecutionProof.from_bytes(data)
    assert proof.to_bytes() == data
    assert proof.height > 0
    assert proof.outcome_proof.outcome.status.kind != ExecutionStatusKind.FAILURE


def test_recorded_proof_outcome_path():
    proof = LightClientExecutionProof.from_bytes(VECTORS[0])
    assert len(proof.outcome_proof.proof) == 2


def test_from_rpc_drops_metadata_and_timestamp():
    obj = make_near_proof_json(height=1234)
    proof = LightClientExecutionProof.from_rpc(obj)

    changed = copy.deepcopy(obj)
    changed["outcome_proof"]["outcome"]["metadata"] = {"version": 1, "gas_profile": None}
    changed["block_header_lite"]["inner_lite"]["timestamp"] = 1
    assert LightClientExecutionProof.from_rpc(changed).to_bytes() == proof.to_bytes()

    assert proof.height == 1234
    assert proof.block_header_lite.inner_lite.timestamp_nanosec == 1700000000123456789
    assert [item.direction for item in proof.outcome_proof.proof] == [Direction.RIGHT, Direction.LEFT]
    assert proof.outcome_proof.outcome.status.value == b'{"ok":true}'
    assert LightClientExecutionProof.from_bytes(proof.to_bytes()) == proof


def test_field_order_in_encoding():
    proof = LightClientExecutionProof.from_rpc(make_near_proof_json())
    data = proof.to_bytes()
    # Outcome merkle path: two items of hash + direction
    assert data[:4] == b"\x02\x00\x00\x00"
    assert data[4:36] == b"\x01" * 32
    assert data[36] == Direction.RIGHT
    assert data[69] == Direction.LEFT
    # Block proof goes last: one item pointing right
    assert data[-37:-33] == b"\x01\x00\x00\x00"
    assert data[-33:-1] == b"\x0f" * 32
    assert data[-1] == Direction.RIGHT


def test_success_receipt_id_status():
    proof = LightClientExecutionProof.from_rpc(
        make_near_proof_json(status={"SuccessReceiptId": b58(b"\x55" * 32)})
    )
    status = proof.outcome_proof.outcome.status
    assert status.kind == ExecutionStatusKind.SUCCESS_RECEIPT_ID
    assert status.value == b"\x55" * 32
    assert LightClientExecutionProof.from_bytes(proof.to_bytes()) == proof


def test_unknown_status():
    proof = LightClientExecutionProof.from_rpc(make_near_proof_json(status="Unknown"))
    assert proof.outcome_proof.outcome.status.kind == ExecutionStatusKind.UNKNOWN


def test_failure_status_cannot_be_proven():
    obj = make_near_proof_json(status={"Failure": {"ActionError": {"index": 0}}})
    with pytest.raises(ProofSerializeError, match="Failed execution outcomes"):
        LightClientExecutionProof.from_rpc(obj)


def test_malformed_response():
    obj = make_near_proof_json()
    del obj["block_proof"]
    with pytest.raises(ProofSerializeError, match="Malformed light client proof"):
        LightClientExecutionProof.from_rpc(obj)

    obj = make_near_proof_json()
    obj["outcome_root_proof"][0]["direction"] = "Up"
    with pytest.raises(ProofSerializeError, match="Unknown merkle direction"):
        LightClientExecutionProof.from_rpc(obj)

    obj = make_near_proof_json()
    obj["outcome_proof"]["id"] = b58(b"\x01" * 31)
    with pytest.raises(ProofSerializeError, match="Invalid hash"):
        LightClientExecutionProof.from_rpc(obj)


def test_trailing_bytes_are_rejected():
    with pytest.raises(ProofSerializeError, match="trailing bytes"):
        LightClientExecutionProof.from_bytes(VECTORS[0] + b"\x00")
