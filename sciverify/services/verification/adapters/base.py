from __future__ import annotations

import time
from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, ClassVar, Dict, List, Mapping, Optional, Tuple

from sciverify.core.logger import get_logger
from sciverify.services.common.coercion import round4, to_str
from sciverify.services.verification.infer import infer_claim_type
from sciverify.services.verification.types import VerificationResult, fail_result, success_result

logger = get_logger(__name__)

NEUTRAL = 0.5

Check = Dict[str, Any]


def neutral(note: str, **extra: Any) -> Check:
    """Component result for "no evidence either way"."""
    return {"score": NEUTRAL, "note": note, **extra}


@dataclass
class ComponentTally:
    """
    Accumulates weighted component checks for one claim-type verifier.

    Each check is a mapping with a ``score`` in [0, 1]. An ``error`` key lands
    in ``errors`` and a ``warning`` key lands in ``warnings``; both keep the
    component name as a prefix so a low score always carries its reason.
    """

    claim_type: str
    weights: Mapping[str, float]
    scores: Dict[str, float] = field(default_factory=dict)
    details: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def record(self, name: str, check: Check) -> Check:
        if name not in self.weights:
            raise KeyError(f"Component '{name}' is not declared for claim type '{self.claim_type}'")

        score = min(1.0, max(0.0, float(check["score"])))
        check["score"] = round4(score)
        self.scores[name] = check["score"]
        self.details[name] = check

        if check.get("error"):
            self.errors.append(f"{name}: {check['error']}")
        if check.get("warning"):
            self.warnings.append(f"{name}: {check['warning']}")
        return check

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def score(self) -> float:
        missing = [name for name in self.weights if name not in self.scores]
        if missing:
            raise KeyError(f"Components not scored for '{self.claim_type}': {', '.join(missing)}")
        return round4(sum(weight * self.scores[name] for name, weight in self.weights.items()))

    def finish(self) -> Tuple[float, Dict[str, Any]]:
        score = self.score()
        details = {"claim_type": self.claim_type, **self.details, "component_scores": dict(self.scores)}
        return score, details


ClaimVerifier = Callable[[Dict[str, Any], ComponentTally], Awaitable[None]]


class DomainAdapter(ABC):
    """
    Base class for a domain adapter.

    Subclasses declare ``domain``, the weight table per claim type and, where
    it makes sense, a ``default_claim_type``. Each claim type is served by a
    coroutine method named ``verify_<claim_type>`` that records components into
    the tally it is given.
    """

    domain: ClassVar[str]
    component_weights: ClassVar[Mapping[str, Mapping[str, float]]]
    default_claim_type: ClassVar[Optional[str]] = None

    @property
    def claim_types(self) -> List[str]:
        return list(self.component_weights)

    def resolve_claim_type(
        self, claim_result: Mapping[str, Any], metadata: Mapping[str, Any]
    ) -> Tuple[Optional[str], List[str]]:
        """Explicit -> inferred -> adapter default. Returns (claim_type, warnings)."""
        explicit = to_str(claim_result.get("claim_type")) or to_str(metadata.get("claim_type"))
        if explicit:
            return explicit, []

        inferred = infer_claim_type(self.domain, claim_result)
        if inferred:
            return inferred, [f"claim_type not provided — inferred as '{inferred}' from result fields"]

        if self.default_claim_type:
            return self.default_claim_type, [f"claim_type not provided — defaulting to '{self.default_claim_type}'"]

        return None, []

    async def verify(self, claim_result: Dict[str, Any], metadata: Mapping[str, Any]) -> VerificationResult:
        start = time.perf_counter()
        claim_type, resolve_warnings = self.resolve_claim_type(claim_result, metadata)
        valid = ", ".join(self.claim_types)

        if claim_type is None:
            return fail_result(
                self.domain,
                [f"Missing claim_type and could not infer from result fields. Valid claim types: {valid}"],
            )
        if claim_type not in self.component_weights:
            return fail_result(
                self.domain,
                [f"Unsupported {self.domain} claim type: '{claim_type}'. Valid types: {valid}"],
                warnings=resolve_warnings,
            )

        tally = ComponentTally(claim_type=claim_type, weights=self.component_weights[claim_type])
        handler: ClaimVerifier = getattr(self, f"verify_{claim_type}")
        await handler(claim_result, tally)

        score, details = tally.finish()
        logger.debug(f"[{type(self).__name__}] {claim_type} components: {tally.scores}")
        return success_result(
            self.domain,
            score,
            details,
            warnings=resolve_warnings + tally.warnings,
            errors=tally.errors,
            compute_time_seconds=time.perf_counter() - start,
        )
