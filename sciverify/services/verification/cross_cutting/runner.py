"""
Cross-cutting runner.

Filters the registered verifiers to the applicable ones, runs them
concurrently and races the whole batch against one global timeout.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sciverify.core.config import settings
from sciverify.core.logger import get_logger
from sciverify.core.observability import cross_cutting_timeouts_total
from sciverify.services.verification.cross_cutting.base import CrossCuttingVerifier
from sciverify.services.verification.cross_cutting.citation import CitationVerifier
from sciverify.services.verification.cross_cutting.data_integrity import DataIntegrityVerifier
from sciverify.services.verification.cross_cutting.reproducibility import ReproducibilityVerifier
from sciverify.services.verification.cross_cutting.statistical_forensics import StatisticalForensicsVerifier
from sciverify.services.verification.types import CrossCuttingResult, cc_result

logger = get_logger(__name__)

DEFAULT_VERIFIERS: tuple = (
    CitationVerifier(),
    StatisticalForensicsVerifier(),
    DataIntegrityVerifier(),
    ReproducibilityVerifier(),
)


def applicable_verifiers(
    verifiers: Sequence[CrossCuttingVerifier], claim_result: Mapping[str, Any]
) -> List[CrossCuttingVerifier]:
    selected: List[CrossCuttingVerifier] = []
    for verifier in verifiers:
        try:
            if verifier.is_applicable(claim_result):
                selected.append(verifier)
        except Exception as e:
            logger.warning(f"[CrossCutting] {verifier.name} applicability check failed, skipping: {e}")
    return selected


async def _run_single(
    verifier: CrossCuttingVerifier, claim_result: Dict[str, Any], metadata: Mapping[str, Any]
) -> CrossCuttingResult:
    start = time.perf_counter()
    try:
        result = await verifier.verify(claim_result, metadata)
        return replace(result, compute_time_seconds=time.perf_counter() - start)
    except Exception as e:
        logger.error(f"[CrossCutting] {verifier.name} crashed: {type(e).__name__}: {e}")
        return cc_result(
            verifier.name,
            verifier.weight,
            0.0,
            {},
            errors=[f"Verifier crashed: {e}"],
            compute_time_seconds=time.perf_counter() - start,
        )


async def run_cross_cutting(
    claim_result: Dict[str, Any],
    metadata: Mapping[str, Any],
    verifiers: Optional[Sequence[CrossCuttingVerifier]] = None,
    timeout: Optional[float] = None,
    policy: Optional[str] = None,
) -> List[CrossCuttingResult]:
    """
    Run every applicable cross-cutting verifier concurrently.

    Results come back in registration order. When the global timeout fires,
    unfinished verifiers are cancelled and the policy decides what is kept:

    - ``discard_all``: nothing, the caller sees an empty list
    - ``keep_finished``: finished results, plus a zero-weight "timed out"
      entry per cancelled verifier so the gap stays visible

    Never raises.
    """
    timeout = settings.CROSS_CUTTING_TIMEOUT_SECONDS if timeout is None else timeout
    policy = policy or settings.CROSS_CUTTING_TIMEOUT_POLICY

    applicable = applicable_verifiers(DEFAULT_VERIFIERS if verifiers is None else verifiers, claim_result)
    if not applicable:
        return []

    tasks = [asyncio.create_task(_run_single(v, claim_result, metadata)) for v in applicable]
    done, pending = await asyncio.wait(tasks, timeout=timeout)

    if not pending:
        return [task.result() for task in tasks]

    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)
    cross_cutting_timeouts_total.inc()

    timed_out = [v.name for v, task in zip(applicable, tasks) if task in pending]
    logger.warning(
        f"[CrossCutting] Batch timed out after {timeout}s "
        f"({len(done)}/{len(tasks)} finished, pending: {', '.join(timed_out)}); policy={policy}"
    )

    if policy != "keep_finished":
        return []

    results: List[CrossCuttingResult] = []
    for verifier, task in zip(applicable, tasks):
        if task in done:
            results.append(task.result())
        else:
            results.append(
                cc_result(
                    verifier.name,
                    0.0,
                    0.0,
                    {},
                    errors=[f"Timed out after {timeout}s"],
                    compute_time_seconds=timeout,
                )
            )
    return results
