"""Contract shared by every domain adapter: weight tables, neutral scoring, claim-type resolution."""

import importlib

import pytest
from conftest import ForbiddenFetch

from sciverify.services.verification.adapters import ADAPTER_CLASSES, ComponentTally
from sciverify.services.verification.adapters.physics import PhysicsAdapter
from sciverify.services.verification.domain_weights import SUPPORTED_DOMAINS

CLAIM_CASES = [(cls, claim_type) for cls in ADAPTER_CLASSES for claim_type in cls.component_weights]


@pytest.fixture
def no_network(monkeypatch):
    for cls in ADAPTER_CLASSES:
        module = importlib.import_module(cls.__module__)
        monkeypatch.setattr(module, "fetch_json", ForbiddenFetch(), raising=False)
        monkeypatch.setattr(module, "fetch_text", ForbiddenFetch(), raising=False)


def test_one_adapter_per_supported_domain():
    assert {cls.domain for cls in ADAPTER_CLASSES} == SUPPORTED_DOMAINS


@pytest.mark.parametrize("adapter_cls,claim_type", CLAIM_CASES)
def test_component_weights_sum_to_one(adapter_cls, claim_type):
    weights = adapter_cls.component_weights[claim_type]
    assert abs(sum(weights.values()) - 1.0) < 1e-9
    assert all(w > 0 for w in weights.values())


@pytest.mark.parametrize("adapter_cls,claim_type", CLAIM_CASES)
def test_every_claim_type_has_a_handler(adapter_cls, claim_type):
    assert callable(getattr(adapter_cls, f"verify_{claim_type}", None))


@pytest.mark.asyncio
@pytest.mark.parametrize("adapter_cls,claim_type", CLAIM_CASES)
async def test_missing_inputs_score_exactly_neutral(no_network, adapter_cls, claim_type):
    result = await adapter_cls().verify({}, {"claim_type": claim_type})

    assert result.score == 0.5
    assert result.errors == []
    assert result.details["claim_type"] == claim_type
    assert set(result.details["component_scores"]) == set(adapter_cls.component_weights[claim_type])
    assert all(score == 0.5 for score in result.details["component_scores"].values())


@pytest.mark.asyncio
async def test_explicit_claim_type_in_result_beats_metadata(no_network):
    metadata = {"claim_type": "analytical_derivation"}
    result = await PhysicsAdapter().verify({"claim_type": "dimensional_analysis"}, metadata)
    assert result.details["claim_type"] == "dimensional_analysis"
    assert not any("inferred" in w or "defaulting" in w for w in result.warnings)


@pytest.mark.asyncio
async def test_inferred_claim_type_is_echoed_as_warning(no_network):
    result = await PhysicsAdapter().verify({"dimensionless_groups": []}, {})
    assert result.details["claim_type"] == "dimensional_analysis"
    assert result.warnings[0] == "claim_type not provided — inferred as 'dimensional_analysis' from result fields"


@pytest.mark.asyncio
async def test_default_claim_type_is_used_when_nothing_matches(no_network):
    result = await PhysicsAdapter().verify({"unrelated": 1}, {})
    assert result.details["claim_type"] == "numerical_simulation"
    assert "claim_type not provided — defaulting to 'numerical_simulation'" in result.warnings


@pytest.mark.asyncio
async def test_adapter_without_default_fails_listing_valid_types(no_network):
    from sciverify.services.verification.adapters.genomics import GenomicsAdapter

    result = await GenomicsAdapter().verify({"unrelated": 1}, {})
    assert result.score == 0.0
    assert result.passed is False
    assert result.errors == [
        "Missing claim_type and could not infer from result fields. "
        "Valid claim types: variant_annotation, gene_expression, gwas_association"
    ]


@pytest.mark.asyncio
async def test_unsupported_claim_type(no_network):
    result = await PhysicsAdapter().verify({}, {"claim_type": "quantum_gravity"})
    assert result.score == 0.0
    assert result.errors[0].startswith("Unsupported physics claim type: 'quantum_gravity'. Valid types: ")


def test_tally_rejects_undeclared_components():
    tally = ComponentTally(claim_type="demo", weights={"a": 0.5, "b": 0.5})
    with pytest.raises(KeyError):
        tally.record("c", {"score": 1.0})


def test_tally_requires_every_component():
    tally = ComponentTally(claim_type="demo", weights={"a": 0.5, "b": 0.5})
    tally.record("a", {"score": 1.0})
    with pytest.raises(KeyError):
        tally.finish()


def test_tally_clamps_scores_and_routes_messages():
    tally = ComponentTally(claim_type="demo", weights={"a": 0.6, "b": 0.4})
    tally.record("a", {"score": 1.7, "warning": "high"})
    tally.record("b", {"score": -0.2, "error": "bad"})

    score, details = tally.finish()
    assert score == 0.6
    assert details["component_scores"] == {"a": 1.0, "b": 0.0}
    assert tally.warnings == ["a: high"]
    assert tally.errors == ["b: bad"]
