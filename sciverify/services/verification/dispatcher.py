"""
Adapter registry and the dispatch boundary.

``dispatch_verification`` always returns a ``VerificationResult``: refused
domains and crashing adapters become fail results, never exceptions.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from sciverify.core.logger import get_logger
from sciverify.services.verification.adapters import (
    BioinformaticsAdapter,
    ComputationalBiologyAdapter,
    DomainAdapter,
    EpidemiologyAdapter,
    GenomicsAdapter,
    ImmunoinformaticsAdapter,
    MetabolomicsAdapter,
    MlAiAdapter,
    PhysicsAdapter,
    SystemsBiologyAdapter,
)
from sciverify.services.verification.domain_weights import DEFERRED_DOMAINS
from sciverify.services.verification.types import VerificationResult, fail_result

logger = get_logger(__name__)

AdapterRegistry = Mapping[str, DomainAdapter]


def build_registry() -> AdapterRegistry:
    """Read-only ``domain -> adapter`` map. Each adapter is registered explicitly."""
    registry: Dict[str, DomainAdapter] = {}

    def register(adapter: DomainAdapter) -> None:
        if adapter.domain in registry:
            raise ValueError(f"Adapter for '{adapter.domain}' registered twice")
        registry[adapter.domain] = adapter

    register(GenomicsAdapter())
    register(SystemsBiologyAdapter())
    register(ImmunoinformaticsAdapter())
    register(MetabolomicsAdapter())
    register(BioinformaticsAdapter())
    register(EpidemiologyAdapter())
    register(PhysicsAdapter())
    register(MlAiAdapter())
    register(ComputationalBiologyAdapter())

    return MappingProxyType(registry)


_default_registry: Optional[AdapterRegistry] = None


def get_registry() -> AdapterRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = build_registry()
    return _default_registry


async def dispatch_verification(
    domain: str,
    claim_result: Dict[str, Any],
    metadata: Mapping[str, Any],
    registry: Optional[AdapterRegistry] = None,
) -> VerificationResult:
    if domain == "general":
        return fail_result(domain, ["Domain 'general' has no adapter — verification requires a specific domain"])

    if domain in DEFERRED_DOMAINS:
        dependency = DEFERRED_DOMAINS[domain]
        return fail_result(
            domain,
            [f"Adapter for '{domain}' is deferred — requires native tooling unavailable here ({dependency})"],
        )

    adapter = (registry if registry is not None else get_registry()).get(domain)
    if adapter is None:
        return fail_result(domain, [f"No adapter registered for domain: {domain}"])

    try:
        return await adapter.verify(claim_result, metadata)
    except Exception as e:
        logger.error(f"[Dispatcher] {type(adapter).__name__} crashed: {type(e).__name__}: {e}")
        return fail_result(domain, [f"Adapter crashed: {e}"])
