"""Run several independent solves against one shared version source."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Union

from common.logging_utils import Timer, extra_context
from constants import Constants
from .solution import Solution
from .solver import SolveParameters, Solver
from .source import VersionSource

logger = logging.getLogger(__name__)

SolveOutcome = Union[Solution, Exception]


def solve_parallel(
    params_list: Sequence[SolveParameters],
    source: VersionSource,
    max_workers: Optional[int] = None,
) -> List[SolveOutcome]:
    """Solve each parameter set on its own thread.

    Each solve gets its own Solver; only ``source`` is shared. Results come
    back in input order; a failed solve yields its exception instead of a
    Solution so one failure does not hide the others.
    """
    workers = max_workers or Constants.SOLVE_MAX_WORKERS

    def run(params: SolveParameters) -> SolveOutcome:
        try:
            return Solver(params, source).solve()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            return exc

    with Timer() as t:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(run, params_list))
    failed = sum(1 for r in results if isinstance(r, Exception))
    logger.info(
        "Finished %d solve(s), %d failed",
        len(results),
        failed,
        extra=extra_context(
            event="solve_parallel",
            component="solver",
            action="solve_parallel",
            outcome="success" if not failed else "partial",
            count=len(results),
            duration_ms=t.duration_ms(),
        ),
    )
    return results
