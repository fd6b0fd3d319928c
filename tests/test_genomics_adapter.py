import pytest
from conftest import RoutedFetch, http_error, ok_json, timeout_error

from sciverify.services.verification.adapters import genomics
from sciverify.services.verification.adapters.genomics import GenomicsAdapter, _effect_size, _gwas_p_value
from sciverify.services.verification.dispatcher import dispatch_verification

BRAF_VARIANT = {
    "dbsnp": {"rsid": "rs113488022", "gene": {"symbol": "BRAF"}},
    "clinvar": {"rcv": [{"clinical_significance": "Pathogenic"}, {"clinical_significance": "Likely pathogenic"}]},
    "gnomad_genome": {"af": {"af": 0.0001}},
}

VEP_RESPONSE = [
    {
        "transcript_consequences": [
            {"consequence_terms": ["missense_variant"]},
            {"consequence_terms": ["intron_variant"]},
        ]
    }
]


async def run(monkeypatch, fetch, result, claim_type):
    monkeypatch.setattr(genomics, "fetch_json", fetch)
    return await GenomicsAdapter().verify(result, {"claim_type": claim_type})


@pytest.mark.asyncio
async def test_variant_annotation_fully_supported(monkeypatch):
    fetch = RoutedFetch({"myvariant.info": ok_json(BRAF_VARIANT), "/vep/human/id/": ok_json(VEP_RESPONSE)})
    result = await run(
        monkeypatch,
        fetch,
        {
            "variant_id": "rs113488022",
            "consequence": "Missense Variant",
            "gene": "braf",
            "clinical_significance": "pathogenic",
            "allele_frequency": 0.0001,
        },
        "variant_annotation",
    )

    assert result.score == 1.0
    assert result.errors == []
    assert result.details["consequence_match"]["found"] == ["missense_variant", "intron_variant"]
    assert result.details["variant_exists"]["source"] == "myvariant"


@pytest.mark.asyncio
async def test_hgvs_variant_not_found_is_an_error(monkeypatch):
    fetch = RoutedFetch({"myvariant.info": http_error(404)})
    result = await run(monkeypatch, fetch, {"variant_id": "chr7:g.140453136A>Z"}, "variant_annotation")

    assert result.details["component_scores"]["variant_exists"] == 0.0
    assert result.errors == ["variant_exists: Variant chr7:g.140453136A>Z not found in MyVariant.info or NCBI"]
    # 0.25 * 0 + 0.75 * 0.5
    assert result.score == 0.375


@pytest.mark.asyncio
async def test_unreachable_myvariant_scores_neutral_with_warning(monkeypatch):
    fetch = RoutedFetch(default=timeout_error())
    result = await run(monkeypatch, fetch, {"variant_id": "chr7:g.140453136A>T"}, "variant_annotation")

    assert result.score == 0.5
    assert result.errors == []
    assert any(w.startswith("variant_exists: MyVariant lookup failed") for w in result.warnings)


@pytest.mark.asyncio
async def test_rsid_falls_back_to_dbsnp(monkeypatch):
    fetch = RoutedFetch(
        {"myvariant.info": ok_json({"notfound": True}), "esearch.fcgi": ok_json({"esearchresult": {"count": "3"}})}
    )
    result = await run(monkeypatch, fetch, {"rsid": "rs12345"}, "variant_annotation")

    assert result.details["variant_exists"]["score"] == 0.8
    assert result.details["variant_exists"]["source"] == "ncbi_dbsnp"


@pytest.mark.asyncio
async def test_rsid_missing_everywhere(monkeypatch):
    fetch = RoutedFetch(
        {"myvariant.info": http_error(404), "esearch.fcgi": ok_json({"esearchresult": {"count": "0"}})}
    )
    result = await run(monkeypatch, fetch, {"rsid": "rs999999999999"}, "variant_annotation")

    assert result.details["component_scores"]["variant_exists"] == 0.0
    assert "not found in MyVariant.info or NCBI dbSNP" in result.errors[0]


@pytest.mark.asyncio
async def test_gene_expression_with_unknown_gene(monkeypatch):
    fetch = RoutedFetch(
        {
            "/lookup/symbol/": http_error(400),
            "esearch.fcgi": ok_json({"esearchresult": {"count": "1"}}),
        }
    )
    result = await run(
        monkeypatch,
        fetch,
        {"gene": "NOTAGENE1", "dataset_id": "GSE12345", "fold_change": 2.4, "p_value": 0.003},
        "gene_expression",
    )

    scores = result.details["component_scores"]
    assert scores == {"gene_exists": 0.0, "dataset_exists": 1.0, "expression_range": 1.0, "statistics_valid": 1.0}
    assert result.score == 0.8
    assert result.errors == ["gene_exists: Gene NOTAGENE1 not found in Ensembl"]


@pytest.mark.asyncio
async def test_gene_expression_rejects_bad_p_value(monkeypatch):
    result = await run(monkeypatch, RoutedFetch(), {"p_value": 1.7}, "gene_expression")
    assert result.details["component_scores"]["statistics_valid"] == 0.0
    assert result.errors == ["statistics_valid: p-value 1.7 out of [0, 1] range"]


@pytest.mark.asyncio
async def test_unknown_dataset_prefix_warns(monkeypatch):
    result = await run(monkeypatch, RoutedFetch(), {"dataset_id": "PRJNA1"}, "gene_expression")
    assert result.details["component_scores"]["dataset_exists"] == 0.5
    assert "dataset_exists: Unknown dataset prefix for PRJNA1" in result.warnings


@pytest.mark.asyncio
async def test_gwas_association_catalog_hit(monkeypatch):
    fetch = RoutedFetch(
        {
            "singleNucleotidePolymorphisms": ok_json({"_embedded": {"associations": [{}, {}]}}),
            "myvariant.info": ok_json({"dbsnp": {"rsid": "rs7903146"}}),
        }
    )
    result = await run(
        monkeypatch, fetch, {"rsid": "rs7903146", "p_value": 1e-12, "odds_ratio": 1.4}, "gwas_association"
    )

    assert result.score == 1.0
    assert result.details["gwas_catalog_match"]["associations_found"] == 2


@pytest.mark.parametrize(
    "p_value,expected",
    [(1e-9, 1.0), (5e-8, 1.0), (1e-6, 0.7), (0.01, 0.4), (0.2, 0.2), (1.5, 0.0)],
)
def test_gwas_p_value_bins(p_value, expected):
    assert _gwas_p_value({"p_value": p_value})["score"] == expected


@pytest.mark.parametrize("odds_ratio,expected", [(1.3, 1.0), (8.0, 0.5), (50.0, 0.1), (0, 0.0), (-1, 0.0)])
def test_effect_size_bins(odds_ratio, expected):
    assert _effect_size({"odds_ratio": odds_ratio})["score"] == expected


@pytest.mark.asyncio
async def test_integer_too_large_for_a_float_is_an_invalid_p_value(monkeypatch):
    assert _gwas_p_value({"p_value": 10**400})["score"] == 0.0

    monkeypatch.setattr(genomics, "fetch_json", RoutedFetch())
    result = await dispatch_verification(
        "genomics", {"claim_type": "gwas_association", "p_value": 10**400}, {}, registry={"genomics": GenomicsAdapter()}
    )

    assert not any(error.startswith("Adapter crashed") for error in result.errors)
    assert 0.0 < result.score < 1.0
