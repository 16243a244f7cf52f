"""Read raw poll records from a JSON Lines file."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from pydantic import ValidationError

from .schema import RawPollPayload

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from pollbase.domain.model import RawPoll


class RawImportError(ValueError):
    """A line of the import file is not a valid raw poll object."""

    def __init__(self, path: Path, line_number: int, reason: str) -> None:
        super().__init__(f"{path}:{line_number}: {reason}")
        self.path = path
        self.line_number = line_number


def iter_raw_polls(path: Path) -> Iterator[RawPoll]:
    """Yield one ``RawPoll`` per non-blank line; ids are assigned on storage."""

    with path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                payload = json.loads(line)
            except json.JSONDecodeError as exc:
                raise RawImportError(path, line_number, f"invalid JSON: {exc.msg}") from exc
            if not isinstance(payload, dict):
                raise RawImportError(path, line_number, "expected a JSON object")
            try:
                record = RawPollPayload.model_validate(payload)
            except ValidationError as exc:
                raise RawImportError(path, line_number, str(exc)) from exc
            yield record.to_domain()
