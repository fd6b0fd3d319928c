import math

import pytest
from conftest import RoutedFetch, ok_json, ok_text, text_error

from sciverify.services.verification.adapters import metabolomics
from sciverify.services.verification.adapters.metabolomics import MetabolomicsAdapter, ppm_error, xml_tag_value

GLUCOSE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<metabolite>
  <accession>HMDB0000122</accession>
  <name>D-Glucose</name>
  <chemical_formula>C6H12O6</chemical_formula>
  <monisotopic_molecular_weight>180.0633881178</monisotopic_molecular_weight>
  <iupac_name>(3R,4S,5S,6R)-6-(hydroxymethyl)oxane-2,3,4,5-tetrol</iupac_name>
  <inchikey>WQZGKKKJIJFFOK-GASJEMHNSA-N</inchikey>
</metabolite>
"""


def install(monkeypatch, json_routes=None, text_routes=None):
    json_fetch = RoutedFetch(json_routes or {})
    text_fetch = RoutedFetch(text_routes or {}, default=text_error(503))
    monkeypatch.setattr(metabolomics, "fetch_json", json_fetch)
    monkeypatch.setattr(metabolomics, "fetch_text", text_fetch)
    return json_fetch, text_fetch


async def run(result, claim_type):
    return await MetabolomicsAdapter().verify(result, {"claim_type": claim_type})


def test_xml_tag_value():
    assert xml_tag_value(GLUCOSE_XML, "name") == "D-Glucose"
    assert xml_tag_value("<NAME> x </NAME>", "name") == "x"
    assert xml_tag_value(GLUCOSE_XML, "smiles") is None


def test_ppm_error():
    assert ppm_error(100.001, 100.0) == pytest.approx(10.0)
    assert ppm_error(99.999, 100.0) == pytest.approx(10.0)
    assert ppm_error(1.0, 0.0) == math.inf


@pytest.mark.asyncio
async def test_compound_identification_against_hmdb(monkeypatch):
    json_fetch, _ = install(
        monkeypatch,
        json_routes={"pubchem.ncbi.nlm.nih.gov": ok_json({"PropertyTable": {"Properties": [{"CID": 5793}]}})},
        text_routes={"hmdb.ca/metabolites/HMDB0000122.xml": ok_text(GLUCOSE_XML)},
    )
    result = await run(
        {"hmdb_id": "HMDB0000122", "name": "d-glucose", "formula": "C6H12O6", "mz": 181.0707},
        "compound_identification",
    )

    assert result.score == 1.0
    assert result.details["mass_match"]["ppm"] < 1
    assert result.details["pubchem_cross_ref"]["inchikey_from_hmdb"] == "WQZGKKKJIJFFOK-GASJEMHNSA-N"
    assert "/inchikey/WQZGKKKJIJFFOK-GASJEMHNSA-N/" in json_fetch.calls[0]["url"]


@pytest.mark.asyncio
async def test_hmdb_entry_missing(monkeypatch):
    install(monkeypatch, text_routes={"hmdb.ca": text_error(404)})
    result = await run({"hmdb_id": "HMDB9999999"}, "compound_identification")

    assert result.errors == ["identifier_valid: HMDB entry HMDB9999999 not found"]


@pytest.mark.asyncio
async def test_formula_and_mass_mismatch(monkeypatch):
    install(monkeypatch, text_routes={"hmdb.ca": ok_text(GLUCOSE_XML)})
    result = await run(
        {"hmdb_id": "HMDB0000122", "formula": "C6H14O6", "mz": 181.08}, "compound_identification"
    )

    scores = result.details["component_scores"]
    assert scores["formula_match"] == 0.0
    assert scores["mass_match"] == 0.1
    assert "formula_match: Formula C6H14O6 does not match HMDB formula C6H12O6" in result.warnings


@pytest.mark.asyncio
async def test_sodium_adduct_shifts_expected_mz(monkeypatch):
    install(monkeypatch, text_routes={"hmdb.ca": ok_text(GLUCOSE_XML)})
    result = await run({"hmdb_id": "HMDB0000122", "mz": 203.0526, "adduct": "[M+Na]+"}, "compound_identification")
    assert result.details["mass_match"]["score"] == 1.0


@pytest.mark.asyncio
async def test_pathway_mapping_with_kegg_links(monkeypatch):
    install(
        monkeypatch,
        text_routes={
            "/get/C00031": ok_text("ENTRY       C00031                      Compound\n"),
            "/get/map00010": ok_text("ENTRY       map00010                    Pathway\n"),
            "/link/compound/map00010": ok_text("path:map00010\tcpd:C00031\npath:map00010\tcpd:C00022\n"),
            "/link/enzyme/C00031": ok_text("cpd:C00031\tec:2.7.1.1\ncpd:C00031\tec:2.7.1.2\n"),
        },
    )
    result = await run(
        {"compound_id": "C00031", "pathway_id": "map00010", "enzymes": ["2.7.1.1", "ec:9.9.9.9"]},
        "pathway_mapping",
    )

    assert result.details["compound_in_pathway"]["compounds_in_pathway"] == 2
    assert result.details["enzyme_links"]["matched"] == 1
    assert result.score == 0.875


@pytest.mark.asyncio
async def test_unknown_kegg_compound(monkeypatch):
    install(monkeypatch, text_routes={"/get/C99999": text_error(404)})
    result = await run({"compound_id": "C99999"}, "pathway_mapping")
    assert result.errors == ["compound_exists: KEGG compound C99999 not found"]


@pytest.mark.asyncio
async def test_spectral_match_library_hit(monkeypatch):
    install(monkeypatch, json_routes={"massbank.eu": ok_json([{"accession": "MSBNK-1"}, {"accession": "MSBNK-2"}])})
    result = await run(
        {
            "precursor_mz": 181.07,
            "adduct": "[M+H]+",
            "peaks": [[50.0, 10], [80.2, 100], [120.5, 30]],
            "ppm_tolerance": 5,
        },
        "spectral_match",
    )
    assert result.score == 1.0
    assert result.details["library_hit"]["hits"] == 2


@pytest.mark.asyncio
async def test_spectral_match_no_library_hits(monkeypatch):
    install(monkeypatch, json_routes={"massbank.eu": ok_json([])})
    result = await run({"precursor_mz": 181.07}, "spectral_match")
    assert result.details["component_scores"]["library_hit"] == 0.3


@pytest.mark.asyncio
async def test_implausible_precursor(monkeypatch):
    install(monkeypatch)
    result = await run({"precursor_mz": 10000}, "spectral_match")
    assert result.details["component_scores"]["precursor_valid"] == 0.0
    assert result.errors == ["precursor_valid: Precursor m/z 10000.0 implausible"]


@pytest.mark.parametrize(
    "peaks,expected",
    [
        ([[50, 1], [80, 2]], 1.0),
        ([[80, 1], [50, 2]], 0.8),
        ([[-1, 2], [10, 5]], 0.5),
        ([["x"], [10, 5]], 0.5),
    ],
)
def test_peak_list_check(peaks, expected):
    assert MetabolomicsAdapter._peak_list_check(peaks)["score"] == pytest.approx(expected)
