"""JSON Lines import of raw poll records."""

from __future__ import annotations

from .reader import RawImportError, iter_raw_polls
from .schema import RawPollPayload

__all__ = ["RawImportError", "RawPollPayload", "iter_raw_polls"]
