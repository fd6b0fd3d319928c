import pytest

from sciverify.services.verification.domain_weights import (
    DEFERRED_DOMAINS,
    DOMAIN_WEIGHTS,
    SUPPORTED_DOMAINS,
    domain_weight,
)
from sciverify.services.verification.infer import CLAIM_TYPE_SIGNATURES, infer_claim_type, infer_domain


def test_variant_with_consequence_is_genomics():
    assert infer_domain({"variant_id": "rs1", "consequence": "missense_variant"}) == "genomics"


def test_empty_result_has_no_domain():
    assert infer_domain({}) is None


def test_single_signature_field_is_not_enough():
    assert infer_domain({"variant_id": "rs1"}) is None


def test_null_fields_do_not_count():
    assert infer_domain({"variant_id": "rs1", "consequence": None}) is None


def test_tie_keeps_the_more_specific_domain():
    # two immunoinformatics fields and two ml_ai fields
    result = {"epitope": "SIINFEKL", "allele": "HLA-A*02:01", "model_id": "x", "metrics": {}}
    assert infer_domain(result) == "immunoinformatics"


def test_strictly_better_domain_wins():
    result = {"model_id": "bert", "benchmark": "glue", "metrics": {"accuracy": 90}, "sequence": "ACGT"}
    assert infer_domain(result) == "ml_ai"


def test_non_mapping_result():
    assert infer_domain(["variant_id", "consequence"]) is None


@pytest.mark.parametrize(
    "domain,result,expected",
    [
        ("genomics", {"rsid": "rs123"}, "variant_annotation"),
        ("genomics", {"fold_change": 2.0}, "gene_expression"),
        ("bioinformatics", {"tools": ["bwa"]}, "pipeline_validation"),
        ("systems_biology", {"stoichiometry_matrix": [[1]]}, "flux_balance"),
        ("metabolomics", {"precursor_mz": 181.07}, "spectral_match"),
        ("computational_biology", {"dot_bracket": "((..))"}, "rna_structure"),
        ("computational_biology", {"plddt": 88}, "structure_prediction"),
        ("epidemiology", {"contingency_table": [[1, 2], [3, 4]]}, "odds_ratio"),
        ("physics", {"dimensionless_groups": ["Re"]}, "dimensional_analysis"),
        ("ml_ai", {"code_repo": "https://github.com/a/b"}, "ml_experiment"),
    ],
)
def test_infer_claim_type(domain, result, expected):
    assert infer_claim_type(domain, result) == expected


def test_claim_type_needs_known_domain_and_a_match():
    assert infer_claim_type("chemistry", {"smiles": "CCO"}) is None
    assert infer_claim_type("genomics", {"unrelated": 1}) is None


def test_every_signature_domain_is_supported():
    assert set(CLAIM_TYPE_SIGNATURES) == SUPPORTED_DOMAINS


def test_supported_and_deferred_domains_are_disjoint():
    assert SUPPORTED_DOMAINS.isdisjoint(DEFERRED_DOMAINS)
    assert DEFERRED_DOMAINS["mathematics"] == "Lean4/Docker"


def test_domain_weight_defaults():
    assert domain_weight("physics") == DOMAIN_WEIGHTS["physics"] == 0.75
    assert domain_weight("unknown_domain") == 0.70
    assert all(0 < w < 1 for w in DOMAIN_WEIGHTS.values())
