from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Mapping

from sciverify.services.verification.types import CrossCuttingResult


class CrossCuttingVerifier(ABC):
    """
    A verifier applied to every claim regardless of domain.

    ``weight`` is the verifier's share when the runner's results are
    averaged into the cross-cutting aggregate.
    """

    name: ClassVar[str]
    weight: ClassVar[float]

    @abstractmethod
    def is_applicable(self, claim_result: Mapping[str, Any]) -> bool:
        """True when the claim carries the fields this verifier inspects."""

    @abstractmethod
    async def verify(self, claim_result: Dict[str, Any], metadata: Mapping[str, Any]) -> CrossCuttingResult:
        ...
