"""Tests for proof and verification-key JSON serialization."""

import json

import pytest

from poseidon_stark.circuit.gates import GateRegion
from poseidon_stark.errors import ConfigurationError
from poseidon_stark.protocol import verify
from poseidon_stark.protocol.proof import (
    gate_set_commitment,
    proof_from_json,
    proof_to_json,
    vk_from_json,
    vk_to_json,
)


class TestProofJson:
    """Encoding through JSON text and back."""

    def test_roundtrip_verifies(self, poseidon2_proof) -> None:
        proof, vk = poseidon2_proof
        proof2 = proof_from_json(json.loads(json.dumps(proof_to_json(proof))))
        vk2 = vk_from_json(json.loads(json.dumps(vk_to_json(vk))))
        assert proof2 == proof
        assert vk2.digest() == vk.digest()
        assert verify(vk2, proof2, proof.public_inputs)

    def test_integers_encoded_as_strings(self, poseidon2_proof) -> None:
        proof, vk = poseidon2_proof
        j = proof_to_json(proof)
        assert all(isinstance(v, str) for v in j["publics"])
        assert isinstance(j["nonce"], str)
        assert all(isinstance(v, str) for v in vk_to_json(vk)["setupRoot"])

    def test_regions_survive(self, poseidon2_proof) -> None:
        _, vk = poseidon2_proof
        vk2 = vk_from_json(vk_to_json(vk))
        assert gate_set_commitment(vk2.regions) == vk.gate_set_commitment
        assert [r.gate_name for r in vk2.regions] == [r.gate_name for r in vk.regions]

    @pytest.mark.parametrize("key", ["root1", "evals", "queries", "nonce"])
    def test_missing_field(self, poseidon2_proof, key: str) -> None:
        proof, _ = poseidon2_proof
        j = proof_to_json(proof)
        del j[key]
        with pytest.raises(KeyError):
            proof_from_json(j)

    def test_non_numeric_field(self, poseidon2_proof) -> None:
        proof, _ = poseidon2_proof
        j = proof_to_json(proof)
        j["nonce"] = "abc"
        with pytest.raises(ValueError):
            proof_from_json(j)


def _bump_digit(text: str, fraction: float) -> str:
    """Increment (mod 10) the digit found `fraction` of the way through `text`."""
    digits = [i for i, ch in enumerate(text) if ch.isdigit()]
    pos = digits[int(fraction * (len(digits) - 1))]
    return text[:pos] + str((int(text[pos]) + 1) % 10) + text[pos + 1:]


def _accepted(proof_text: str, vk_text: str, publics) -> bool:
    """Reload both documents and verify; a rejected load counts as not accepted."""
    try:
        proof = proof_from_json(json.loads(proof_text))
        vk = vk_from_json(json.loads(vk_text))
    except (KeyError, ValueError, ConfigurationError):
        return False
    return verify(vk, proof, publics)


def _region_with_parameters(j):
    return next(r for r in j["regions"] if r["parameters"])


def _vk_more_queries(j):
    j["nQueries"] = str(int(j["nQueries"]) + 1)


def _vk_pow_bits(j):
    j["powBits"] = str(int(j["powBits"]) + 1)


def _vk_region_offset(j):
    j["regions"][0]["copy_offset"] += 1


def _vk_region_dropped(j):
    j["regions"].pop()


def _vk_gate_parameter(j):
    params = _region_with_parameters(j)["parameters"]
    params[-1] = [params[-1][0], params[-1][1] - 1]


def _vk_gate_parameter_recommitted(j):
    _vk_gate_parameter(j)
    regions = [GateRegion.from_dict(r) for r in j["regions"]]
    j["gateSetCommitment"] = [str(v) for v in gate_set_commitment(regions)]


def _vk_public_location(j):
    col, row = j["publicInputLocations"][0]
    j["publicInputLocations"][0] = [col, str(int(row) + 1)]


VK_TAMPERINGS = [
    _vk_more_queries,
    _vk_pow_bits,
    _vk_region_offset,
    _vk_region_dropped,
    _vk_gate_parameter,
    _vk_gate_parameter_recommitted,
    _vk_public_location,
]

DIGIT_FRACTIONS = [0.0, 0.07, 0.19, 0.33, 0.5, 0.61, 0.78, 0.9, 1.0]


class TestCorruptedDocuments:
    """A one-character change anywhere in the JSON never yields an accepted proof."""

    @pytest.mark.parametrize("fraction", DIGIT_FRACTIONS)
    def test_proof_digit(self, poseidon2_proof, fraction: float) -> None:
        proof, vk = poseidon2_proof
        proof_text = json.dumps(proof_to_json(proof))
        vk_text = json.dumps(vk_to_json(vk))
        assert _accepted(proof_text, vk_text, proof.public_inputs)
        assert not _accepted(_bump_digit(proof_text, fraction), vk_text, proof.public_inputs)

    @pytest.mark.parametrize("fraction", DIGIT_FRACTIONS)
    def test_vk_digit(self, poseidon2_proof, fraction: float) -> None:
        proof, vk = poseidon2_proof
        proof_text = json.dumps(proof_to_json(proof))
        vk_text = json.dumps(vk_to_json(vk))
        assert not _accepted(proof_text, _bump_digit(vk_text, fraction), proof.public_inputs)

    @pytest.mark.parametrize("tamper", VK_TAMPERINGS, ids=lambda f: f.__name__.lstrip("_"))
    def test_vk_field(self, poseidon2_proof, tamper) -> None:
        proof, vk = poseidon2_proof
        j = json.loads(json.dumps(vk_to_json(vk)))
        tamper(j)
        assert not _accepted(json.dumps(proof_to_json(proof)), json.dumps(j), proof.public_inputs)
