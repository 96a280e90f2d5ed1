"""Persisting proofs, verification keys and public inputs as JSON files."""

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from poseidon_stark.errors import ArtifactIOError
from poseidon_stark.protocol.proof import (
    Proof,
    VerificationKey,
    proof_from_json,
    proof_to_json,
    vk_from_json,
    vk_to_json,
)

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def artifact_paths(output_dir: Path, timestamp: datetime) -> Dict[str, Path]:
    ts = timestamp.strftime(TIMESTAMP_FORMAT)
    return {
        "proof": output_dir / f"proof_{ts}.json",
        "vk": output_dir / f"vk_{ts}.json",
        "public": output_dir / f"public_{ts}.json",
    }


def _write_json(path: Path, data) -> None:
    try:
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
    except (OSError, TypeError, ValueError) as e:
        raise ArtifactIOError(path, str(e)) from e


def _read_json(path: Path):
    try:
        with open(path) as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise ArtifactIOError(path, str(e)) from e


def save_artifacts(
    proof: Proof,
    vk: VerificationKey,
    public_inputs: Sequence[int],
    output_dir,
    timestamp: Optional[datetime] = None,
) -> Dict[str, Path]:
    """Write proof_<ts>.json, vk_<ts>.json and public_<ts>.json; return their paths.

    Raises:
        ArtifactIOError: If the directory or a file cannot be written
    """
    output_dir = Path(output_dir)
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ArtifactIOError(output_dir, str(e)) from e

    paths = artifact_paths(output_dir, timestamp or datetime.now())
    _write_json(paths["proof"], proof_to_json(proof))
    _write_json(paths["vk"], vk_to_json(vk))
    _write_json(paths["public"], [str(v) for v in public_inputs])
    return paths


def load_proof(path) -> Proof:
    path = Path(path)
    data = _read_json(path)
    try:
        return proof_from_json(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ArtifactIOError(path, f"not a proof: {e}") from e


def load_vk(path) -> VerificationKey:
    path = Path(path)
    data = _read_json(path)
    try:
        return vk_from_json(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ArtifactIOError(path, f"not a verification key: {e}") from e


def load_public_inputs(path) -> List[int]:
    path = Path(path)
    data = _read_json(path)
    try:
        return [int(v) for v in data]
    except (TypeError, ValueError) as e:
        raise ArtifactIOError(path, f"not a public-input list: {e}") from e
