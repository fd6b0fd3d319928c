"""
Blend a domain adapter result with the cross-cutting results.

    final = w * domain_score + (1 - w) * cc_weighted_avg

``cc_weighted_avg`` normalises the cross-cutting weights of the verifiers
that actually ran so they sum to 1.0.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from sciverify.services.common.coercion import round4
from sciverify.services.verification.domain_weights import DEFAULT_DOMAIN_WEIGHT
from sciverify.services.verification.types import CrossCuttingResult, VerificationResult, success_result


def cc_weighted_average(cc_results: Sequence[CrossCuttingResult]) -> float:
    total = sum(r.weight for r in cc_results)
    if total <= 0:
        return 0.0
    return sum((r.weight / total) * r.score for r in cc_results)


def merge_results(
    domain_result: VerificationResult,
    cc_results: Sequence[CrossCuttingResult],
    domain_weight: float = DEFAULT_DOMAIN_WEIGHT,
) -> VerificationResult:
    # Nothing ran (or only zero-weight timeouts): the domain result stands alone.
    if not cc_results or sum(r.weight for r in cc_results) <= 0:
        return domain_result

    cc_share = 1.0 - domain_weight
    cc_score = cc_weighted_average(cc_results)
    final_score = min(1.0, round4(domain_weight * domain_result.score + cc_share * cc_score))

    warnings: List[str] = list(domain_result.warnings)
    errors: List[str] = list(domain_result.errors)
    cc_details: List[Dict[str, Any]] = []
    for r in cc_results:
        warnings.extend(r.warnings)
        errors.extend(r.errors)
        cc_details.append(
            {
                "verifier": r.verifier_name,
                "score": r.score,
                "weight": r.weight,
                "details": r.details,
                "errors": r.errors,
                "warnings": r.warnings,
                "compute_time_seconds": r.compute_time_seconds,
            }
        )

    details = dict(domain_result.details)
    details["cross_cutting"] = cc_details
    details["scoring"] = {
        "domain_score": domain_result.score,
        "domain_weight": domain_weight,
        "cc_aggregate_score": round4(cc_score),
        "cc_weight_share": round4(cc_share),
        "final_score": final_score,
    }

    return success_result(
        domain_result.domain,
        final_score,
        details,
        warnings=warnings,
        errors=errors,
        compute_time_seconds=domain_result.compute_time_seconds + sum(r.compute_time_seconds for r in cc_results),
    )
