from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from sciverify.core.config import settings


@dataclass(frozen=True)
class VerificationResult:
    domain: str
    score: float
    badge: str
    passed: bool
    details: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    compute_time_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CrossCuttingResult:
    verifier_name: str
    weight: float
    score: float
    details: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    compute_time_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def score_to_badge(
    score: float,
    green_threshold: Optional[float] = None,
    amber_threshold: Optional[float] = None,
) -> str:
    green = settings.BADGE_GREEN_THRESHOLD if green_threshold is None else green_threshold
    amber = settings.BADGE_AMBER_THRESHOLD if amber_threshold is None else amber_threshold
    if score >= green:
        return "green"
    if score >= amber:
        return "amber"
    return "red"


def is_passing(score: float) -> bool:
    return score >= settings.PASS_THRESHOLD


def fail_result(domain: str, errors: List[str], warnings: Optional[List[str]] = None) -> VerificationResult:
    return VerificationResult(
        domain=domain,
        score=0.0,
        badge="red",
        passed=False,
        details={},
        warnings=list(warnings or []),
        errors=list(errors),
        compute_time_seconds=0.0,
    )


def success_result(
    domain: str,
    score: float,
    details: Dict[str, Any],
    warnings: Optional[List[str]] = None,
    errors: Optional[List[str]] = None,
    compute_time_seconds: float = 0.0,
) -> VerificationResult:
    return VerificationResult(
        domain=domain,
        score=score,
        badge=score_to_badge(score),
        passed=is_passing(score),
        details=details,
        warnings=list(warnings or []),
        errors=list(errors or []),
        compute_time_seconds=compute_time_seconds,
    )


def cc_result(
    name: str,
    weight: float,
    score: float,
    details: Dict[str, Any],
    warnings: Optional[List[str]] = None,
    errors: Optional[List[str]] = None,
    compute_time_seconds: float = 0.0,
) -> CrossCuttingResult:
    return CrossCuttingResult(
        verifier_name=name,
        weight=weight,
        score=score,
        details=details,
        warnings=list(warnings or []),
        errors=list(errors or []),
        compute_time_seconds=compute_time_seconds,
    )
