"""Transaction boundary around a bundle of repositories."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, Self, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker for repositories that share one session and one transaction."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """One transaction over ``repositories``.

    Nothing is committed implicitly: callers ``commit`` once their writes are
    complete, and leaving the block with an exception rolls back.
    """

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> Self: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None:
        """Raise ``IdentityConflict`` on a duplicate key, ``StorageError`` otherwise."""
        ...

    def rollback(self) -> None: ...
