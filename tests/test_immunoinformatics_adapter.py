import pytest
from conftest import RoutedFetch, http_error, ok_json, ok_text, text_error

from sciverify.services.verification.adapters import immunoinformatics
from sciverify.services.verification.adapters.immunoinformatics import (
    ImmunoinformaticsAdapter,
    allele_format_score,
    expected_binder_class,
    mean_hydropathy,
    parse_iedb_ic50,
)

IEDB_MHCI = (
    "allele\tseq_num\tstart\tend\tlength\tpeptide\tmethod\tic50\n"
    "HLA-A*02:01\t1\t1\t8\t8\tSIINFEKL\tnetmhcpan\t25.0\n"
)


def install(monkeypatch, json_routes=None, text_routes=None):
    json_fetch = RoutedFetch(json_routes or {})
    text_fetch = RoutedFetch(text_routes or {}, default=text_error(503))
    monkeypatch.setattr(immunoinformatics, "fetch_json", json_fetch)
    monkeypatch.setattr(immunoinformatics, "fetch_text", text_fetch)
    return json_fetch, text_fetch


async def run(result, claim_type):
    return await ImmunoinformaticsAdapter().verify(result, {"claim_type": claim_type})


def test_parse_iedb_ic50_uses_named_column():
    assert parse_iedb_ic50(IEDB_MHCI) == 25.0


def test_parse_iedb_ic50_falls_back_to_last_column():
    assert parse_iedb_ic50("allele\tscore\nHLA-A*02:01\t33\n") == 33.0


@pytest.mark.parametrize("text", ["", "ic50\nNA\n", "ic50\n-4\n"])
def test_parse_iedb_ic50_without_usable_value(text):
    assert parse_iedb_ic50(text) is None


@pytest.mark.parametrize(
    "allele,expected",
    [("HLA-A*02:01", 1.0), ("HLA-DRB1*15:01", 1.0), ("hla-a2", 0.7), ("HLA-B", 0.7), ("A2", 0.3)],
)
def test_allele_format_score(allele, expected):
    assert allele_format_score(allele) == expected


@pytest.mark.parametrize(
    "ic50,expected", [(10, "strong"), (50, "strong"), (51, "weak"), (500, "weak"), (501, "non-binder")]
)
def test_expected_binder_class(ic50, expected):
    assert expected_binder_class(ic50) == expected


def test_mean_hydropathy():
    assert mean_hydropathy("") == 0.0
    assert mean_hydropathy("AR") == pytest.approx((1.8 - 4.5) / 2)


@pytest.mark.asyncio
async def test_mhc_binding_agrees_with_iedb(monkeypatch):
    _, text_fetch = install(monkeypatch, text_routes={"/mhci/": ok_text(IEDB_MHCI)})
    result = await run(
        {"peptide": "SIINFEKL", "allele": "HLA-A*02:01", "ic50": 20, "classification": "Strong binder"},
        "mhc_binding",
    )

    assert result.score == 1.0
    assert result.details["binding_affinity_recomputed"]["predicted_ic50"] == 25.0
    assert text_fetch.calls[0]["method"] == "POST"
    assert text_fetch.calls[0]["form"]["sequence_text"] == "SIINFEKL"


@pytest.mark.asyncio
async def test_mhc_binding_far_from_prediction(monkeypatch):
    install(monkeypatch, text_routes={"/mhci/": ok_text(IEDB_MHCI)})
    result = await run({"peptide": "SIINFEKL", "allele": "HLA-A*02:01", "ic50": 9000}, "mhc_binding")

    check = result.details["binding_affinity_recomputed"]
    assert check["score"] == 0.2
    assert "is >10x off IEDB prediction" in check["warning"]


@pytest.mark.asyncio
async def test_non_positive_ic50_is_an_error(monkeypatch):
    install(monkeypatch)
    result = await run({"peptide": "SIINFEKL", "allele": "HLA-A*02:01", "ic50": -5}, "mhc_binding")

    assert result.errors == ["binding_affinity_recomputed: IC50 -5 must be > 0"]
    assert result.details["component_scores"]["classification_consistent"] == 0.5


@pytest.mark.asyncio
async def test_classification_inconsistent_with_ic50(monkeypatch):
    install(monkeypatch)
    result = await run({"ic50": 5000, "classification": "strong"}, "mhc_binding")

    assert result.details["classification_consistent"]["expected"] == "non-binder"
    assert result.details["component_scores"]["classification_consistent"] == 0.2


@pytest.mark.asyncio
async def test_class_ii_length_window(monkeypatch):
    install(monkeypatch)
    result = await run({"peptide": "SIINFEKLA", "mhc_class": "II"}, "mhc_binding")

    assert result.details["component_scores"]["peptide_length_valid"] == 0.4
    assert "peptide_length_valid: Peptide length 9 outside expected range for MHC class II" in result.warnings


@pytest.mark.asyncio
async def test_epitope_prediction_found_in_source(monkeypatch):
    install(
        monkeypatch,
        json_routes={"rest.uniprot.org": ok_json({"proteinDescription": {"recommendedName": "Ovalbumin"}})},
        text_routes={
            ".fasta": ok_text(">sp|P01012|OVAL\nMGSIGAASMEFC\nFDVSIINFEKLTEW\n"),
            "/mhci/": ok_text(IEDB_MHCI),
        },
    )
    result = await run(
        {"peptide": "siinfekl", "protein_id": "P01012", "allele": "HLA-A*02:01"}, "epitope_prediction"
    )

    assert result.details["peptide_in_source"]["found"] is True
    assert result.details["component_scores"]["iedb_score_check"] == 0.8
    assert result.score == 0.95


@pytest.mark.asyncio
async def test_epitope_not_in_source_and_unknown_protein(monkeypatch):
    install(
        monkeypatch,
        json_routes={"rest.uniprot.org": http_error(404)},
        text_routes={".fasta": ok_text(">sp|X\nMGSIGAAS\n")},
    )
    result = await run({"peptide": "SIINFEKL", "protein_id": "P99999"}, "epitope_prediction")

    assert "source_protein_valid: UniProt entry P99999 not found" in result.errors
    assert "peptide_in_source: Peptide not found in source protein sequence" in result.errors


@pytest.mark.asyncio
async def test_bcell_epitope_hydrophilic_and_conserved(monkeypatch):
    xrefs = [{"database": "OrthoDB"}, {"database": "OMA"}, {"database": "PDB"}]
    install(
        monkeypatch,
        json_routes={"rest.uniprot.org": ok_json({"uniProtKBCrossReferences": xrefs})},
        text_routes={"/bcell/": ok_text("Position\tResidue\tScore\n1\tK\t0.8\n")},
    )
    result = await run({"sequence": "KDERKDE", "protein_id": "P01012"}, "bcell_epitope")

    assert result.details["component_scores"]["surface_accessibility"] == 1.0
    assert result.details["conservation_check"]["databases"] == ["OMA", "OrthoDB"]
    assert result.score == 0.95


@pytest.mark.asyncio
async def test_hydrophobic_bcell_epitope(monkeypatch):
    install(monkeypatch)
    result = await run({"sequence": "LLLLIVV"}, "bcell_epitope")
    assert result.details["component_scores"]["surface_accessibility"] == 0.2
    assert result.details["component_scores"]["iedb_bcell_check"] == 0.5


@pytest.mark.asyncio
async def test_malformed_cross_reference_databases_are_ignored(monkeypatch):
    xrefs = [{"database": ["OMA"]}, {"database": {"name": "OMA"}}, {"database": "OrthoDB"}]
    install(
        monkeypatch,
        json_routes={"rest.uniprot.org": ok_json({"uniProtKBCrossReferences": xrefs})},
        text_routes={"/bcell/": ok_text("Position\tResidue\tScore\n1\tK\t0.8\n")},
    )
    result = await run({"sequence": "KDERKDE", "protein_id": "P01012"}, "bcell_epitope")

    assert result.details["conservation_check"]["databases"] == ["OrthoDB"]
    assert result.details["component_scores"]["conservation_check"] == 0.7
