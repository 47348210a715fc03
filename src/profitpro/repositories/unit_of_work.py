from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

from profitpro.domain.errors import (
    AppError,
    CompensatedWriteFailure,
    CompensationFailure,
    StorageError,
)

log = logging.getLogger("profitpro.ledger")

A = TypeVar("A")
B = TypeVar("B")


def compensate(undo: Callable[[], object], *, operation: str, attempts: int = 3) -> Optional[BaseException]:
    """Run ``undo`` up to ``attempts`` times.

    Returns None once it succeeds, or the last error if every attempt failed.
    An undo that returns ``False`` or ``None`` counts as a failed attempt
    (the guarded store calls report a rejected write that way).
    """
    last_err: Optional[BaseException] = None
    for attempt in range(1, max(1, int(attempts)) + 1):
        try:
            outcome = undo()
        except Exception as exc:
            last_err = exc
            log.warning("compensation_failed operation=%s attempt=%s error=%s", operation, attempt, exc)
            continue
        if outcome is None or outcome is False:
            last_err = StorageError(f"{operation}: compensating write was rejected by the store")
            log.warning("compensation_rejected operation=%s attempt=%s", operation, attempt)
            continue
        log.info("compensation_applied operation=%s attempt=%s", operation, attempt)
        return None
    return last_err


def run_paired(
    apply: Callable[[], A],
    then: Callable[[A], B],
    undo: Callable[[A], object],
    *,
    operation: str,
    attempts: int = 3,
) -> tuple[A, B]:
    """Paired mutation with compensation.

    ``apply`` commits step A. ``then`` receives its result and commits step B.
    If B raises, ``undo`` reverts A before anything is reported, so callers
    only ever see "both committed" or "neither committed". If the revert
    itself keeps failing, ``CompensationFailure`` carries both errors.
    """
    first = apply()
    try:
        second = then(first)
    except Exception as exc:
        rollback_err = compensate(lambda: undo(first), operation=operation, attempts=attempts)
        if rollback_err is not None:
            log.error(
                "compensation_exhausted operation=%s error=%s rollback_error=%s; stock and sales may disagree",
                operation,
                exc,
                rollback_err,
            )
            raise CompensationFailure(
                f"{operation} failed and could not be rolled back. Please contact an administrator.",
                original=exc,
                rollback_error=rollback_err,
            ) from exc
        if isinstance(exc, AppError) and not isinstance(exc, StorageError):
            raise
        raise CompensatedWriteFailure(f"{operation} failed: {exc}", cause=exc) from exc
    return first, second
