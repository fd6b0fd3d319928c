"""
Systems biology domain adapter.

Pathway enrichment (Ensembl, Reactome, KEGG), protein interaction networks
(STRING) and flux balance models. Enrichment recomputation and LP
feasibility have no solver in this stack and score neutral with a warning.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, urlencode

from sciverify.constants.config import (
    ENSEMBL_API,
    ENSEMBL_GENE_SAMPLE,
    FLUX_TOLERANCE,
    KEGG_API,
    REACTOME_API,
    STRING_API,
    STRING_MAX_IDENTIFIERS,
    STRING_REQUIRED_SCORE,
    STRING_SPECIES_HUMAN,
)
from sciverify.services.common.coercion import as_string_array, first_present, first_str, round4, to_num, to_str
from sciverify.services.common.http_client import fetch_json, fetch_text
from sciverify.services.verification.adapters.base import ComponentTally, DomainAdapter, neutral

Edge = Tuple[Optional[str], Optional[str]]


def edge_endpoints(edge: Any) -> Edge:
    """(source, target) from ``[a, b]`` or ``{"source": a, "target": b}``."""
    if isinstance(edge, (list, tuple)) and len(edge) >= 2:
        return to_str(edge[0]), to_str(edge[1])
    if isinstance(edge, dict):
        return to_str(edge.get("source")) or None, to_str(edge.get("target")) or None
    return None, None


def _string_query(proteins: List[str], **extra: Any) -> str:
    params = {"identifiers": "\r".join(proteins[:STRING_MAX_IDENTIFIERS]), "species": STRING_SPECIES_HUMAN, **extra}
    return urlencode(params)


class SystemsBiologyAdapter(DomainAdapter):
    domain = "systems_biology"
    component_weights = {
        "pathway_enrichment": {
            "gene_set_valid": 0.20,
            "pathway_exists": 0.20,
            "enrichment_recomputed": 0.30,
            "fdr_correction": 0.30,
        },
        "network_topology": {
            "proteins_exist": 0.20,
            "interactions_verified": 0.25,
            "metrics_recomputed": 0.30,
            "hub_identification": 0.25,
        },
        "flux_balance": {
            "model_valid": 0.20,
            "stoichiometry_consistent": 0.25,
            "objective_feasible": 0.25,
            "flux_bounds_respected": 0.30,
        },
    }

    # ------------------------------------------------------------------------
    # pathway_enrichment
    # ------------------------------------------------------------------------
    async def verify_pathway_enrichment(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        genes = as_string_array(first_present(result, "genes", "gene_set", "gene_list"))
        pathway_id = first_str(result, "pathway_id", "pathway")

        if genes:
            sample = genes[:ENSEMBL_GENE_SAMPLE]
            lookups = await asyncio.gather(
                *(fetch_json(f"{ENSEMBL_API}/lookup/symbol/homo_sapiens/{quote(gene, safe='')}") for gene in sample)
            )
            # Ensembl answers 400 for an unknown symbol; anything else without a body is an outage
            answered = [res for res in lookups if res.ok or res.status in (400, 404)]
            unreachable = len(sample) - len(answered)
            if not answered:
                error = lookups[0].error
                tally.record(
                    "gene_set_valid",
                    neutral("Ensembl unavailable", sampled=len(sample), warning=f"Ensembl gene lookup failed: {error}"),
                )
            else:
                found = sum(1 for res in answered if res.ok)
                check: Dict[str, Any] = {
                    "score": found / len(answered),
                    "total": len(genes),
                    "sampled": len(sample),
                    "valid": found,
                }
                if unreachable:
                    check["warning"] = f"{unreachable} of {len(sample)} Ensembl gene lookups failed; scored on the rest"
                if found < len(answered):
                    check["error"] = f"{len(answered) - found} gene symbol(s) not found in Ensembl"
                tally.record("gene_set_valid", check)
        else:
            tally.record("gene_set_valid", neutral("No gene set provided"))

        if not pathway_id:
            tally.record("pathway_exists", neutral("No pathway ID provided"))
        elif pathway_id.startswith("R-"):
            res = await fetch_json(f"{REACTOME_API}/data/pathway/{quote(pathway_id, safe='')}")
            tally.record("pathway_exists", self._existence(pathway_id, "Reactome", res.ok, res.status, res.error))
        else:
            res = await fetch_text(f"{KEGG_API}/get/{quote(pathway_id, safe='')}")
            tally.record("pathway_exists", self._existence(pathway_id, "KEGG", res.ok, res.status, res.error))

        tally.record(
            "enrichment_recomputed",
            neutral(
                "Hypergeometric recomputation needs scipy; neutral score",
                warning="Cannot recompute enrichment without scipy; returning neutral",
            ),
        )

        tally.record("fdr_correction", self._fdr_check(result))

    @staticmethod
    def _existence(entry_id: str, source: str, ok: bool, status: int, error: Optional[str]) -> Dict[str, Any]:
        if ok:
            return {"score": 1.0, "id": entry_id, "source": source, "found": True}
        if status in (400, 404):
            return {
                "score": 0.0,
                "id": entry_id,
                "source": source,
                "found": False,
                "error": f"{source} pathway {entry_id} not found",
            }
        return neutral(f"{source} unavailable", id=entry_id, warning=f"{source} lookup failed: {error}")

    @staticmethod
    def _fdr_check(result: Dict[str, Any]) -> Dict[str, Any]:
        raw_value = first_present(result, "p_value", "pvalue")
        fdr_value = first_present(result, "fdr", "adjusted_pvalue", "q_value")
        n_tests = to_num(first_present(result, "n_tests", "num_tests"))
        if raw_value is None or fdr_value is None:
            return neutral("Insufficient data for FDR check")

        raw_p = to_num(raw_value, -1.0)
        fdr = to_num(fdr_value, -1.0)
        if not (0 <= raw_p <= 1 and 0 <= fdr <= 1):
            return {
                "score": 0.0,
                "raw_p": raw_value,
                "fdr": fdr_value,
                "valid": False,
                "error": "p-value or FDR out of [0, 1] range",
            }

        if fdr < raw_p:
            return {
                "score": 0.2,
                "raw_p": raw_p,
                "fdr": fdr,
                "valid": False,
                "note": "FDR < raw p-value is suspicious",
                "warning": "FDR is smaller than raw p-value, which is unexpected",
            }

        check: Dict[str, Any] = {"score": 1.0, "raw_p": raw_p, "fdr": fdr, "valid": True}
        # Bonferroni bounds any BH-adjusted value from above
        if n_tests is not None and fdr > raw_p * n_tests * 1.1:
            check.update(score=0.5, warning="FDR exceeds Bonferroni upper bound")
        return check

    # ------------------------------------------------------------------------
    # network_topology
    # ------------------------------------------------------------------------
    async def verify_network_topology(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        proteins = as_string_array(first_present(result, "proteins", "nodes", "identifiers"))
        raw_edges = first_present(result, "edges", "interactions")
        edges = [edge_endpoints(e) for e in raw_edges] if isinstance(raw_edges, list) else []

        if proteins:
            queried = min(len(proteins), STRING_MAX_IDENTIFIERS)
            res = await fetch_json(f"{STRING_API}/resolve?{_string_query(proteins)}")
            if res.ok and isinstance(res.data, list):
                resolved = len(res.data)
                tally.record(
                    "proteins_exist",
                    {"score": min(1.0, resolved / queried), "total": len(proteins), "resolved": resolved},
                )
            else:
                tally.record(
                    "proteins_exist",
                    neutral(
                        "STRING resolve query failed",
                        detail=res.error,
                        warning="Could not verify proteins via STRING",
                    ),
                )
        else:
            tally.record("proteins_exist", neutral("No protein identifiers provided"))

        if len(proteins) >= 2:
            query = _string_query(proteins, required_score=STRING_REQUIRED_SCORE)
            res = await fetch_json(f"{STRING_API}/network?{query}")
            if res.ok and isinstance(res.data, list):
                edge_count = len(res.data)
                max_edges = len(proteins) * (len(proteins) - 1) / 2
                score = min(1.0, edge_count / max(max_edges * 0.1, 1)) if edge_count else 0.2
                tally.record(
                    "interactions_verified",
                    {
                        "score": score,
                        "edges_found": edge_count,
                        "proteins_queried": min(len(proteins), STRING_MAX_IDENTIFIERS),
                    },
                )
            else:
                tally.record(
                    "interactions_verified",
                    neutral("STRING network query failed", warning="Could not verify interactions via STRING"),
                )
        else:
            tally.record("interactions_verified", neutral("Fewer than 2 proteins, cannot check interactions"))

        if edges:
            tally.record("metrics_recomputed", self._metrics_check(result, edges))
        else:
            tally.record("metrics_recomputed", neutral("No edge list provided for recomputation"))

        hubs = as_string_array(first_present(result, "hubs", "hub_genes", "hub_proteins"))
        if not (hubs and edges):
            tally.record("hub_identification", neutral("No hubs or edges provided for hub verification"))
            return

        degree: Counter = Counter()
        for source, target in edges:
            if source:
                degree[source] += 1
            if target:
                degree[target] += 1
        ranked = degree.most_common()
        top_nodes = {name.lower() for name, _ in ranked[: max(len(hubs), 5)]}
        matched = [hub for hub in hubs if hub.lower() in top_nodes]
        tally.record(
            "hub_identification",
            {
                "score": len(matched) / len(hubs),
                "claimed": hubs,
                "matched": matched,
                "top_degree_nodes": [{"node": name, "degree": count} for name, count in ranked[:5]],
            },
        )

    @staticmethod
    def _metrics_check(result: Dict[str, Any], edges: List[Edge]) -> Dict[str, Any]:
        claimed_nodes = to_num(first_present(result, "n_nodes", "node_count"), 0.0)
        claimed_edges = to_num(first_present(result, "n_edges", "edge_count"), 0.0)
        nodes = {endpoint for edge in edges for endpoint in edge if endpoint}

        score = 1.0
        problems = []
        if claimed_nodes > 0 and len(nodes) != claimed_nodes:
            score -= 0.3
            problems.append(f"Claimed {claimed_nodes:g} nodes but edges imply {len(nodes)}")
        if claimed_edges > 0 and len(edges) != claimed_edges:
            score -= 0.3
            problems.append(f"Claimed {claimed_edges:g} edges but found {len(edges)}")

        check: Dict[str, Any] = {
            "score": max(0.0, score),
            "computed_nodes": len(nodes),
            "computed_edges": len(edges),
            "claimed_nodes": claimed_nodes,
            "claimed_edges": claimed_edges,
        }
        if problems:
            check["warning"] = "; ".join(problems)
        return check

    # ------------------------------------------------------------------------
    # flux_balance
    # ------------------------------------------------------------------------
    async def verify_flux_balance(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        matrix = first_present(result, "stoichiometry_matrix", "S")
        bounds = first_present(result, "bounds", "flux_bounds")
        fluxes = first_present(result, "fluxes", "flux_values")

        if isinstance(matrix, list) and matrix:
            width = len(matrix[0]) if isinstance(matrix[0], list) else 0
            rectangular = all(isinstance(row, list) and len(row) == width for row in matrix)
            bounds_match = len(bounds) == width if isinstance(bounds, list) else True

            if rectangular and width > 0 and bounds_match:
                tally.record("model_valid", {"score": 1.0, "rows": len(matrix), "cols": width, "bounds_match": True})
            else:
                problems = []
                if not rectangular:
                    problems.append("Stoichiometry matrix rows have inconsistent lengths")
                if not bounds_match:
                    problems.append("Bounds dimension does not match matrix columns")
                check: Dict[str, Any] = {
                    "score": 0.3,
                    "rows": len(matrix),
                    "col_lengths_consistent": rectangular,
                    "bounds_match": bounds_match,
                }
                if problems:
                    check["error"] = "; ".join(problems)
                tally.record("model_valid", check)

            nonzero = any(isinstance(row, list) and any(to_num(v, 0.0) != 0 for v in row) for row in matrix)
            tally.record("stoichiometry_consistent", {"score": 0.7 if nonzero else 0.3, "has_nonzero": nonzero})
        else:
            tally.record("model_valid", neutral("No stoichiometry matrix provided"))
            tally.record("stoichiometry_consistent", neutral("No matrix for consistency check"))

        tally.record(
            "objective_feasible",
            neutral(
                "Linear programming solver unavailable; neutral score",
                warning="Cannot verify objective feasibility without linear programming solver",
            ),
        )

        if not (isinstance(fluxes, list) and isinstance(bounds, list) and fluxes and len(fluxes) == len(bounds)):
            tally.record("flux_bounds_respected", neutral("Insufficient flux/bounds data"))
            return

        violations = 0
        for flux_value, bound in zip(fluxes, bounds):
            if not (isinstance(bound, (list, tuple)) and len(bound) >= 2):
                continue
            flux = to_num(flux_value, 0.0)
            lower, upper = to_num(bound[0], 0.0), to_num(bound[1], 0.0)
            if flux < lower - FLUX_TOLERANCE or flux > upper + FLUX_TOLERANCE:
                violations += 1

        rate = violations / len(fluxes)
        check = {
            "score": max(0.0, 1.0 - rate * 5),
            "total_fluxes": len(fluxes),
            "violations": violations,
            "violation_rate": round4(rate),
        }
        if violations:
            check["warning"] = f"{violations} of {len(fluxes)} fluxes violate bounds"
        tally.record("flux_bounds_respected", check)
