"""
Shared fixtures: finalised assemblies for both round-function families and a
small proof over the Poseidon2 assembly.

Proving parameters are kept small (LDE factor 8, 12 bits of query security)
so the pure-Python prover finishes quickly.
"""

import pytest

from poseidon_stark.circuit.gates.round_function import RoundFunctionFamily
from poseidon_stark.cli import build_round_function_assembly
from poseidon_stark.protocol.config import ProofConfig
from poseidon_stark.protocol.prover import prove

DEMO_INPUTS = list(range(8))


@pytest.fixture(scope="session")
def small_config():
    return ProofConfig(fri_lde_factor=8, security_level=12)


@pytest.fixture(scope="session")
def poseidon_build():
    return build_round_function_assembly(RoundFunctionFamily.POSEIDON, DEMO_INPUTS)


@pytest.fixture(scope="session")
def poseidon2_build():
    return build_round_function_assembly(RoundFunctionFamily.POSEIDON2, DEMO_INPUTS)


@pytest.fixture(scope="session")
def poseidon_assembly(poseidon_build):
    return poseidon_build[0]


@pytest.fixture(scope="session")
def poseidon2_assembly(poseidon2_build):
    return poseidon2_build[0]


@pytest.fixture(scope="session", params=["poseidon", "poseidon2"])
def assembly(request, poseidon_assembly, poseidon2_assembly):
    """Either reference assembly."""
    return {"poseidon": poseidon_assembly, "poseidon2": poseidon2_assembly}[request.param]


@pytest.fixture(scope="session")
def poseidon2_proof(poseidon2_assembly, small_config):
    """(proof, vk) for the Poseidon2 demo circuit."""
    return prove(poseidon2_assembly, small_config)
