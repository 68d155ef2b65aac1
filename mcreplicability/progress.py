"""
Progress reporting for MCReplicability analyses.

Provides a callback-based progress system that works from both Python scripts
and notebooks. Progress is reported via a simple (current, total) callback.
"""

import sys
from typing import Callable, Optional


class ProgressReporter:
    """Wraps a ``(current, total)`` callback with counting and throttling.

    Tracks the number of completed replicates and fires the callback at most
    once every *update_every* advances, preventing excessive I/O when
    replicates complete very quickly.

    Args:
        total: Total number of replicates across all passes and groups.
        callback: Function called as ``callback(current, total)`` on each
            (throttled) update.
        update_every: Fire the callback at most once per this many advances.
            Defaults to ``max(1, total // 200)`` (~200 updates total).
    """

    def __init__(
        self,
        total: int,
        callback: Callable[[int, int], None],
        update_every: Optional[int] = None,
    ):
        self.total = total
        self._callback = callback
        self._current = 0
        self.update_every = update_every if update_every is not None else max(1, total // 200)

    @property
    def current(self) -> int:
        return self._current

    def start(self):
        """Signal the beginning of the run (fires an initial 0/total update)."""
        self._current = 0
        self._callback(0, self.total)

    def advance(self, n: int = 1):
        """Advance the counter by *n* steps, firing the callback when due."""
        previous = self._current
        self._current += n
        crossed = self._current // self.update_every > previous // self.update_every
        if self._current >= self.total or crossed:
            self._callback(self._current, self.total)

    def finish(self):
        """Signal completion (fires a final total/total update if not already there)."""
        if self._current < self.total:
            self._current = self.total
            self._callback(self.total, self.total)


class PrintReporter:
    """Writes ``\\rProgress: 45.2% (723/1600 replicates)`` to stderr."""

    def __call__(self, current: int, total: int):
        if total <= 0:
            return
        pct = 100.0 * current / total
        sys.stderr.write(f"\rProgress: {pct:5.1f}% ({current}/{total} replicates)")
        sys.stderr.flush()
        if current >= total:
            sys.stderr.write("\n")
            sys.stderr.flush()


class TqdmReporter:
    """Optional tqdm-based progress reporter (lazy import).

    One bar spans both passes and all groups of an analysis; requires the
    ``progress`` extra.

    Usage::

        from mcreplicability.progress import TqdmReporter
        analysis.estimate(progress_callback=TqdmReporter())
    """

    def __init__(self, **tqdm_kwargs):
        tqdm_kwargs.setdefault("desc", "Replicates")
        self._tqdm_kwargs = tqdm_kwargs
        self._bar = None

    def __call__(self, current: int, total: int):
        from tqdm import tqdm

        if self._bar is None:
            self._bar = tqdm(total=total, unit="rep", **self._tqdm_kwargs)

        delta = current - self._bar.n
        if delta > 0:
            self._bar.update(delta)

        if current >= total:
            self._bar.close()
            self._bar = None


def compute_total_replicates(
    resampling_repetitions: int,
    bootstrap_repetitions: int,
    n_groups: int = 1,
) -> int:
    """Return the total number of replicates of an analysis.

    Args:
        resampling_repetitions: Replicates of the resampling pass.
        bootstrap_repetitions: Replicates of the bootstrap pass.
        n_groups: Number of groups (1 for an overall analysis).

    Returns:
        ``(resampling_repetitions + bootstrap_repetitions) * n_groups``.
    """
    return (resampling_repetitions + bootstrap_repetitions) * n_groups
