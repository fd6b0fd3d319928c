"""
Claim verification: domain adapters, cross-cutting verifiers, score merge.

Entry point is ``verify``; everything else is exposed for callers that want
to run a single stage.
"""

from sciverify.services.verification.cross_cutting.runner import run_cross_cutting
from sciverify.services.verification.dispatcher import AdapterRegistry, build_registry, dispatch_verification
from sciverify.services.verification.domain_weights import DEFERRED_DOMAINS, DOMAIN_WEIGHTS, SUPPORTED_DOMAINS
from sciverify.services.verification.engine import verify
from sciverify.services.verification.infer import infer_claim_type, infer_domain
from sciverify.services.verification.score_merge import merge_results
from sciverify.services.verification.types import CrossCuttingResult, VerificationResult, score_to_badge

__all__ = [
    "AdapterRegistry",
    "CrossCuttingResult",
    "DEFERRED_DOMAINS",
    "DOMAIN_WEIGHTS",
    "SUPPORTED_DOMAINS",
    "VerificationResult",
    "build_registry",
    "dispatch_verification",
    "infer_claim_type",
    "infer_domain",
    "merge_results",
    "run_cross_cutting",
    "score_to_badge",
    "verify",
]
