from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from day_allocator.config import EngineSettings
from day_allocator.models import PartitionState
from day_allocator.partition import validate_partition


class StateDocumentError(ValueError):
    """Raised when a state document is malformed or breaks partition invariants."""


def load_state(raw: str, settings: EngineSettings | None = None) -> PartitionState:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StateDocumentError(f"State document is not valid JSON: {exc.msg}.") from exc
    if not isinstance(payload, dict):
        raise StateDocumentError("State document must be a JSON object.")

    try:
        state = PartitionState.model_validate(payload)
    except ValidationError as exc:
        raise StateDocumentError(f"State document has invalid fields: {exc}") from exc

    problems = validate_partition(state, settings)
    if problems:
        raise StateDocumentError("State document breaks partition invariants: " + "; ".join(problems))
    return state


def read_state_file(path: Path, settings: EngineSettings | None = None) -> PartitionState:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StateDocumentError(f"Cannot read state document {path}: {exc.strerror}.") from exc
    return load_state(raw, settings)


def dump_state(state: PartitionState) -> str:
    return json.dumps(state.model_dump(), indent=2, ensure_ascii=False)
