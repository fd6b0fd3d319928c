"""Domain adapters, one per supported scientific domain."""

from sciverify.services.verification.adapters.base import ComponentTally, DomainAdapter, neutral
from sciverify.services.verification.adapters.bioinformatics import BioinformaticsAdapter
from sciverify.services.verification.adapters.computational_biology import ComputationalBiologyAdapter
from sciverify.services.verification.adapters.epidemiology import EpidemiologyAdapter
from sciverify.services.verification.adapters.genomics import GenomicsAdapter
from sciverify.services.verification.adapters.immunoinformatics import ImmunoinformaticsAdapter
from sciverify.services.verification.adapters.metabolomics import MetabolomicsAdapter
from sciverify.services.verification.adapters.ml_ai import MlAiAdapter
from sciverify.services.verification.adapters.physics import PhysicsAdapter
from sciverify.services.verification.adapters.systems_biology import SystemsBiologyAdapter

ADAPTER_CLASSES = (
    MlAiAdapter,
    BioinformaticsAdapter,
    ComputationalBiologyAdapter,
    PhysicsAdapter,
    GenomicsAdapter,
    EpidemiologyAdapter,
    SystemsBiologyAdapter,
    ImmunoinformaticsAdapter,
    MetabolomicsAdapter,
)

__all__ = [
    "ADAPTER_CLASSES",
    "BioinformaticsAdapter",
    "ComponentTally",
    "ComputationalBiologyAdapter",
    "DomainAdapter",
    "EpidemiologyAdapter",
    "GenomicsAdapter",
    "ImmunoinformaticsAdapter",
    "MetabolomicsAdapter",
    "MlAiAdapter",
    "PhysicsAdapter",
    "SystemsBiologyAdapter",
    "neutral",
]
