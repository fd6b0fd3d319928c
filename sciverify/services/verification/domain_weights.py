"""
Trust given to a domain adapter's own checks versus the cross-cutting verifiers.

    final = w * domain_score + (1 - w) * cross_cutting_weighted_average
"""

from types import MappingProxyType

DEFAULT_DOMAIN_WEIGHT = 0.70

DOMAIN_WEIGHTS = MappingProxyType(
    {
        "mathematics": 0.90,
        "physics": 0.75,
        "ml_ai": 0.65,
        "bioinformatics": 0.70,
        "computational_biology": 0.70,
        "genomics": 0.70,
        "epidemiology": 0.70,
        "systems_biology": 0.70,
        "immunoinformatics": 0.70,
        "metabolomics": 0.70,
        "materials_science": 0.75,
        "chemistry": 0.75,
    }
)

SUPPORTED_DOMAINS = frozenset(
    {
        "ml_ai",
        "bioinformatics",
        "computational_biology",
        "physics",
        "genomics",
        "epidemiology",
        "systems_biology",
        "immunoinformatics",
        "metabolomics",
    }
)

# Domain -> native tooling it needs and this runtime does not have
DEFERRED_DOMAINS = MappingProxyType(
    {
        "mathematics": "Lean4/Docker",
        "materials_science": "pymatgen",
        "chemistry": "rdkit",
    }
)


def domain_weight(domain: str) -> float:
    return DOMAIN_WEIGHTS.get(domain, DEFAULT_DOMAIN_WEIGHT)
