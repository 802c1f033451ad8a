from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Iterator

from fastapi import HTTPException, status


class GenerationGuard:
    """Allows one generation run per academic year at a time within the process."""

    def __init__(self) -> None:
        self._active: set[str] = set()
        self._lock = Lock()

    def acquire(self, academic_year: str) -> bool:
        with self._lock:
            if academic_year in self._active:
                return False
            self._active.add(academic_year)
        return True

    def release(self, academic_year: str) -> None:
        with self._lock:
            self._active.discard(academic_year)

    def clear(self) -> None:
        with self._lock:
            self._active.clear()


_guard = GenerationGuard()


@contextmanager
def generation_slot(academic_year: str) -> Iterator[None]:
    if not _guard.acquire(academic_year):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A timetable generation run for {academic_year} is already in progress.",
        )
    try:
        yield
    finally:
        _guard.release(academic_year)


def clear_generation_guard() -> None:
    _guard.clear()
