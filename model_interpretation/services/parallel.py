"""
Unit scheduling shared by the per-feature analyses.

Permutation importance (one unit per feature) and interaction strength (one
unit per feature or feature pair) are embarrassingly parallel. ``run_units``
executes a worker over the units either inline or on a thread pool, reports
progress after every finished unit and honours a cooperative cancellation
predicate checked between units. Results are keyed by unit, so the merged
output does not depend on completion order.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, Hashable, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

ProgressFn = Callable[[int, int, Any], None]
StopFn = Callable[[], bool]


def run_units(
    units: Sequence[Hashable],
    worker: Callable[[Hashable], Any],
    n_jobs: int = 1,
    progress: Optional[ProgressFn] = None,
    should_stop: Optional[StopFn] = None,
) -> Tuple[Dict[Hashable, Any], bool]:
    """Run ``worker(unit)`` for every unit.

    Args
    ----
    units:
        Unit keys (feature names, feature pairs, ...).
    worker:
        Function computing the result of one unit.
    n_jobs:
        Number of worker threads; ``1`` runs inline.
    progress:
        Called as ``progress(done, total, result)`` after each finished unit.
    should_stop:
        Checked before each unit starts; once it returns True no new unit is
        started.

    Returns
    -------
    tuple[dict, bool]
        ``(results, complete)``: results keyed by unit, and whether every
        unit ran.
    """
    total = len(units)
    results: Dict[Hashable, Any] = {}

    def _stopped() -> bool:
        return should_stop is not None and bool(should_stop())

    def _record(unit: Hashable, result: Any) -> None:
        results[unit] = result
        if progress is not None:
            progress(len(results), total, result)

    if n_jobs is None or n_jobs <= 1:
        for unit in units:
            if _stopped():
                logger.info("Cancelled after %d/%d units", len(results), total)
                break
            _record(unit, worker(unit))
        return results, len(results) == total

    def _guarded(unit: Hashable) -> Tuple[bool, Any]:
        if _stopped():
            return False, None
        return True, worker(unit)

    with ThreadPoolExecutor(max_workers=n_jobs) as executor:
        futures = {executor.submit(_guarded, unit): unit for unit in units}
        for future in as_completed(futures):
            ran, result = future.result()
            if ran:
                _record(futures[future], result)

    if len(results) < total:
        logger.info("Cancelled after %d/%d units", len(results), total)
    return results, len(results) == total
