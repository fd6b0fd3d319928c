import pytest
from conftest import RoutedFetch, http_error, ok_json, text_error

from sciverify.services.verification.adapters import systems_biology
from sciverify.services.verification.adapters.systems_biology import SystemsBiologyAdapter, edge_endpoints


def install(monkeypatch, json_routes=None, text_routes=None):
    json_fetch = RoutedFetch(json_routes or {})
    text_fetch = RoutedFetch(text_routes or {}, default=text_error(503))
    monkeypatch.setattr(systems_biology, "fetch_json", json_fetch)
    monkeypatch.setattr(systems_biology, "fetch_text", text_fetch)
    return json_fetch, text_fetch


async def run(result, claim_type):
    return await SystemsBiologyAdapter().verify(result, {"claim_type": claim_type})


@pytest.mark.parametrize(
    "edge,expected",
    [
        (["TP53", "MDM2"], ("TP53", "MDM2")),
        (("a", "b", 0.9), ("a", "b")),
        ({"source": "TP53", "target": "MDM2"}, ("TP53", "MDM2")),
        ({"source": "TP53"}, ("TP53", None)),
        ("TP53-MDM2", (None, None)),
        (["TP53"], (None, None)),
    ],
)
def test_edge_endpoints(edge, expected):
    assert edge_endpoints(edge) == expected


@pytest.mark.asyncio
async def test_flux_balance_consistent_model(monkeypatch):
    install(monkeypatch)
    result = await run(
        {
            "stoichiometry_matrix": [[1, -1, 0], [0, 1, -1]],
            "bounds": [[0, 10], [0, 10], [0, 10]],
            "fluxes": [5, 5, 5],
        },
        "flux_balance",
    )

    scores = result.details["component_scores"]
    assert scores == {
        "model_valid": 1.0,
        "stoichiometry_consistent": 0.7,
        "objective_feasible": 0.5,
        "flux_bounds_respected": 1.0,
    }
    assert result.score == 0.8
    expected = "objective_feasible: Cannot verify objective feasibility without linear programming solver"
    assert expected in result.warnings


@pytest.mark.asyncio
async def test_flux_bound_violations_are_penalised_fivefold(monkeypatch):
    install(monkeypatch)
    result = await run(
        {"fluxes": [1, 5, -2, 0.5], "bounds": [[0, 10], [0, 4], [0, 10], [0, 1]]},
        "flux_balance",
    )

    check = result.details["flux_bounds_respected"]
    assert check["violations"] == 2
    assert check["score"] == 0.0
    assert "flux_bounds_respected: 2 of 4 fluxes violate bounds" in result.warnings


@pytest.mark.asyncio
async def test_single_violation_in_ten(monkeypatch):
    install(monkeypatch)
    fluxes = [1.0] * 9 + [11.0]
    result = await run({"fluxes": fluxes, "bounds": [[0, 10]] * 10}, "flux_balance")
    assert result.details["component_scores"]["flux_bounds_respected"] == 0.5


@pytest.mark.asyncio
async def test_ragged_stoichiometry_matrix(monkeypatch):
    install(monkeypatch)
    result = await run({"stoichiometry_matrix": [[1, -1], [0]]}, "flux_balance")

    assert result.details["component_scores"]["model_valid"] == 0.3
    assert result.errors == ["model_valid: Stoichiometry matrix rows have inconsistent lengths"]


@pytest.mark.asyncio
async def test_pathway_enrichment(monkeypatch):
    install(
        monkeypatch,
        json_routes={
            "/homo_sapiens/TP53": ok_json({"id": "ENSG00000141510"}),
            "/homo_sapiens/BRCA1": ok_json({"id": "ENSG00000012048"}),
            "/homo_sapiens/FAKEGENE": http_error(400),
            "reactome.org": ok_json({"stId": "R-HSA-109581"}),
        },
    )
    result = await run(
        {
            "genes": ["TP53", "BRCA1", "FAKEGENE"],
            "pathway_id": "R-HSA-109581",
            "p_value": 0.001,
            "fdr": 0.01,
            "n_tests": 100,
        },
        "pathway_enrichment",
    )

    assert result.details["gene_set_valid"]["valid"] == 2
    assert result.details["pathway_exists"]["source"] == "Reactome"
    assert result.details["component_scores"]["fdr_correction"] == 1.0
    assert result.score == 0.7833


@pytest.mark.asyncio
async def test_kegg_pathway_missing(monkeypatch):
    install(monkeypatch, text_routes={"/get/hsa99999": text_error(404)})
    result = await run({"pathway_id": "hsa99999"}, "pathway_enrichment")
    assert result.errors == ["pathway_exists: KEGG pathway hsa99999 not found"]


@pytest.mark.parametrize(
    "fields,expected",
    [
        ({"p_value": 0.01, "fdr": 0.001}, 0.2),
        ({"p_value": 1.5, "fdr": 0.2}, 0.0),
        ({"p_value": 0.001, "fdr": 0.5, "n_tests": 10}, 0.5),
        ({"p_value": 0.001, "fdr": 0.005}, 1.0),
        ({"p_value": 0.001}, 0.5),
    ],
)
def test_fdr_check(fields, expected):
    assert SystemsBiologyAdapter._fdr_check(fields)["score"] == expected


@pytest.mark.asyncio
async def test_network_topology_matches_string(monkeypatch):
    json_fetch, _ = install(
        monkeypatch,
        json_routes={
            "/resolve?": ok_json([{"preferredName": "TP53"}, {"preferredName": "MDM2"}, {"preferredName": "CDKN1A"}]),
            "/network?": ok_json([{"score": 0.99}, {"score": 0.95}]),
        },
    )
    result = await run(
        {
            "proteins": ["TP53", "MDM2", "CDKN1A"],
            "edges": [["TP53", "MDM2"], {"source": "TP53", "target": "CDKN1A"}],
            "n_nodes": 3,
            "n_edges": 2,
            "hubs": ["tp53"],
        },
        "network_topology",
    )

    assert result.score == 1.0
    assert "species=9606" in json_fetch.calls[0]["url"]
    assert "required_score=400" in json_fetch.calls[1]["url"]


@pytest.mark.asyncio
async def test_network_metrics_disagree_with_edges(monkeypatch):
    install(monkeypatch)
    result = await run({"edges": [["A", "B"], ["B", "C"]], "n_nodes": 5, "n_edges": 2}, "network_topology")

    assert result.details["component_scores"]["metrics_recomputed"] == 0.7
    assert "metrics_recomputed: Claimed 5 nodes but edges imply 3" in result.warnings


@pytest.mark.asyncio
async def test_claimed_hub_outside_top_degree_nodes(monkeypatch):
    install(monkeypatch)
    edges = [["A", "B"], ["A", "C"], ["A", "D"], ["A", "E"], ["A", "F"], ["B", "C"], ["G", "H"]]
    result = await run({"edges": edges, "hubs": ["A", "H"]}, "network_topology")

    check = result.details["hub_identification"]
    assert check["matched"] == ["A"]
    assert check["score"] == 0.5
    assert check["top_degree_nodes"][0] == {"node": "A", "degree": 5}


@pytest.mark.asyncio
async def test_ensembl_outage_leaves_gene_set_neutral(monkeypatch):
    install(monkeypatch)
    result = await run({"genes": ["TP53", "BRCA1"]}, "pathway_enrichment")

    assert result.details["component_scores"]["gene_set_valid"] == 0.5
    assert "gene_set_valid: Ensembl gene lookup failed: Timeout after 15000ms" in result.warnings
    assert result.errors == []
    assert result.score == 0.5


@pytest.mark.asyncio
async def test_partial_ensembl_outage_scores_answered_lookups(monkeypatch):
    install(monkeypatch, json_routes={"/homo_sapiens/TP53": ok_json({"id": "ENSG00000141510"})})
    result = await run({"genes": ["TP53", "BRCA1"]}, "pathway_enrichment")

    check = result.details["gene_set_valid"]
    assert check["score"] == 1.0
    assert check["valid"] == 1
    assert "gene_set_valid: 1 of 2 Ensembl gene lookups failed; scored on the rest" in result.warnings
