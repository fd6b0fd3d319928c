"""
Inbound entry point: resolve the domain, run the adapter and the
cross-cutting checks concurrently, merge into one ``VerificationResult``.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from sciverify.core.logger import get_logger
from sciverify.core.observability import stage_timer, verification_duration_seconds, verifications_total
from sciverify.core.schemas import VerificationMetadata
from sciverify.services.verification.cross_cutting.runner import run_cross_cutting
from sciverify.services.verification.dispatcher import AdapterRegistry, dispatch_verification
from sciverify.services.verification.domain_weights import SUPPORTED_DOMAINS, domain_weight
from sciverify.services.verification.infer import infer_domain
from sciverify.services.verification.score_merge import merge_results
from sciverify.services.verification.types import CrossCuttingResult, VerificationResult, fail_result

logger = get_logger(__name__)

MetadataInput = Union[Mapping[str, Any], VerificationMetadata, None]


def _validate_metadata(metadata: MetadataInput) -> VerificationMetadata:
    if isinstance(metadata, VerificationMetadata):
        return metadata
    return VerificationMetadata.model_validate(dict(metadata or {}))


def resolve_domain(
    domain: Optional[str], claim_result: Mapping[str, Any], metadata: VerificationMetadata
) -> Tuple[Optional[str], List[str]]:
    """Returns (domain, warnings); domain is None when nothing resolves."""
    explicit = domain or metadata.domain
    if explicit:
        return explicit, []
    inferred = infer_domain(claim_result)
    if inferred:
        return inferred, [f"domain not provided — inferred as '{inferred}' from result fields"]
    return None, []


async def _timed_dispatch(
    domain: str,
    claim_result: Dict[str, Any],
    metadata: Dict[str, Any],
    registry: Optional[AdapterRegistry],
) -> VerificationResult:
    with stage_timer("domain_adapter"):
        return await dispatch_verification(domain, claim_result, metadata, registry=registry)


async def _timed_cross_cutting(claim_result: Dict[str, Any], metadata: Dict[str, Any]) -> List[CrossCuttingResult]:
    with stage_timer("cross_cutting"):
        return await run_cross_cutting(claim_result, metadata)


def _record(result: VerificationResult, started: float) -> VerificationResult:
    verifications_total.labels(domain=result.domain, badge=result.badge).inc()
    verification_duration_seconds.labels(domain=result.domain).observe(time.perf_counter() - started)
    logger.info(
        f"[Engine] domain={result.domain} score={result.score} badge={result.badge} "
        f"errors={len(result.errors)} warnings={len(result.warnings)}"
    )
    return result


async def verify(
    domain: Optional[str],
    claim_result: Any,
    metadata: MetadataInput = None,
    registry: Optional[AdapterRegistry] = None,
) -> VerificationResult:
    """
    Verify one claim result.

    Args:
        domain: Scientific domain; falls back to ``metadata.domain``, then to
            inference from the result's fields.
        claim_result: The agent-submitted result record (a JSON object).
        metadata: Task metadata (domain, claim_type, task_type, lab_slug).
        registry: Adapter registry override, mostly for tests.

    Returns:
        The merged ``VerificationResult``. Never raises for malformed input.
    """
    started = time.perf_counter()

    try:
        meta = _validate_metadata(metadata)
    except ValidationError as e:
        errors = [f"Invalid metadata: {e.error_count()} validation error(s)"]
        return _record(fail_result(domain or "unknown", errors), started)

    if not isinstance(claim_result, Mapping):
        return _record(fail_result(domain or meta.domain or "unknown", ["Task result must be a JSON object"]), started)
    claim_result = dict(claim_result)

    resolved, inference_warnings = resolve_domain(domain, claim_result, meta)
    if resolved is None:
        supported = ", ".join(sorted(SUPPORTED_DOMAINS))
        return _record(
            fail_result(
                "unknown",
                [f"Missing domain and could not infer from result fields. Supported domains: {supported}"],
            ),
            started,
        )

    meta_dict = meta.model_dump()
    meta_dict["domain"] = resolved

    domain_result, cc_results = await asyncio.gather(
        _timed_dispatch(resolved, claim_result, meta_dict, registry),
        _timed_cross_cutting(claim_result, meta_dict),
    )

    # Refused domains and unresolvable claim types stay unmerged.
    if domain_result.score == 0 and not domain_result.details:
        result = domain_result
    else:
        with stage_timer("merge"):
            result = merge_results(domain_result, cc_results, domain_weight(resolved))

    if inference_warnings:
        result = replace(result, warnings=inference_warnings + result.warnings)

    return _record(result, started)
