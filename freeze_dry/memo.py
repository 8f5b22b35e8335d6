# freeze_dry/memo.py
"""
Write-once result cells for lazily computed asynchronous values.

A cell moves UNCOMPUTED -> IN_FLIGHT -> READY | FAILED exactly once. The
first caller starts the computation; every caller, concurrent or later,
awaits the same outcome, failures included. Waiters are shielded from each
other: cancelling one waiter does not cancel the shared computation.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


class CellState(Enum):
    UNCOMPUTED = "uncomputed"
    IN_FLIGHT = "in-flight"
    READY = "ready"
    FAILED = "failed"


class Cell(Generic[T]):
    """A single memoized asynchronous value."""

    def __init__(self) -> None:
        self._task: Optional[asyncio.Future] = None

    @property
    def state(self) -> CellState:
        task = self._task
        if task is None:
            return CellState.UNCOMPUTED
        if not task.done():
            return CellState.IN_FLIGHT
        if task.cancelled() or task.exception() is not None:
            return CellState.FAILED
        return CellState.READY

    async def resolve(self, factory: Callable[[], Awaitable[T]]) -> T:
        if self._task is None:
            self._task = asyncio.ensure_future(factory())
        return await asyncio.shield(self._task)

    def cancel(self) -> bool:
        task = self._task
        if task is None or task.done():
            return False
        task.cancel()
        return True


class CellArena:
    """All cells of one capture, keyed by (owner, field)."""

    def __init__(self) -> None:
        self._cells: Dict[Tuple[Hashable, str], Cell[Any]] = {}

    def cell(self, owner: Hashable, name: str) -> Cell[Any]:
        key = (owner, name)
        cell = self._cells.get(key)
        if cell is None:
            cell = self._cells[key] = Cell()
        return cell

    def state(self, owner: Hashable, name: str) -> CellState:
        cell = self._cells.get((owner, name))
        return CellState.UNCOMPUTED if cell is None else cell.state

    async def resolve(
        self, owner: Hashable, name: str, factory: Callable[[], Awaitable[T]]
    ) -> T:
        return await self.cell(owner, name).resolve(factory)

    def __len__(self) -> int:
        return len(self._cells)

    def counts(self) -> Dict[CellState, int]:
        out = {state: 0 for state in CellState}
        for cell in self._cells.values():
            out[cell.state] += 1
        return out

    def cancel_pending(self) -> int:
        """Cancel every in-flight cell; returns how many were cancelled."""
        return sum(1 for cell in self._cells.values() if cell.cancel())
