"""
Computational biology domain adapter.

Covers structure prediction, protein design, binder design, RNA secondary
structure and structure comparison. Lookups go to RCSB PDB, Rfam and UniProt;
geometry checks that need Biopython/DSSP score neutral with a warning.
"""

from __future__ import annotations

import re
from typing import Any, Dict
from urllib.parse import quote

from sciverify.constants.config import (
    CANONICAL_RNA_PAIRS,
    KNOWN_STRUCTURE_PREDICTORS,
    RCSB_ENTRY_API,
    RFAM_API,
    UNIPROT_API,
)
from sciverify.services.common.coercion import first_str, round4, to_num, to_str
from sciverify.services.common.http_client import fetch_json
from sciverify.services.verification.adapters.base import ComponentTally, DomainAdapter, neutral

VALID_AMINO_ACIDS = frozenset("ACDEFGHIKLMNPQRSTVWY")
PDB_ID_RE = re.compile(r"^[A-Z0-9]{4}$")


class ComputationalBiologyAdapter(DomainAdapter):
    domain = "computational_biology"
    default_claim_type = "structure_prediction"
    component_weights = {
        "structure_prediction": {
            "metrics_plausibility": 0.30,
            "sequence_valid": 0.25,
            "method_valid": 0.20,
            "structure_checks": 0.25,
        },
        "protein_design": {
            "sequence_valid": 0.35,
            "metrics_plausibility": 0.35,
            "backbone_quality": 0.30,
        },
        "binder_design": {
            "sequence_valid": 0.25,
            "metrics_plausibility": 0.25,
            "target_valid": 0.25,
            "interface_quality": 0.25,
        },
        "rna_structure": {
            "dot_bracket_valid": 0.30,
            "energy_plausible": 0.25,
            "rfam_check": 0.25,
            "base_pairs_valid": 0.20,
        },
        "structure_comparison": {
            "pdb_ids_valid": 0.30,
            "rmsd_plausible": 0.30,
            "tm_score_consistent": 0.20,
            "alignment_plausible": 0.20,
        },
    }

    async def verify_structure_prediction(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        tally.record("metrics_plausibility", check_metrics_plausibility(result))
        tally.record("sequence_valid", check_protein_sequence(first_str(result, "sequence")))

        method = first_str(result, "method").lower()
        known = any(m in method for m in KNOWN_STRUCTURE_PREDICTORS)
        if not method:
            tally.record("method_valid", neutral("No prediction method declared"))
        else:
            tally.record("method_valid", {"score": 1.0 if known else 0.5, "method": method, "known": known})

        tally.record("structure_checks", neutral("Biopython/DSSP not available — neutral score"))
        tally.warn("Structural geometry checks degraded — Biopython/DSSP unavailable")

    async def verify_protein_design(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        tally.record("sequence_valid", check_protein_sequence(first_str(result, "sequence", "designed_sequence")))
        tally.record("metrics_plausibility", check_metrics_plausibility(result))
        tally.record("backbone_quality", neutral("Biopython unavailable — neutral score"))
        tally.warn("Backbone quality check degraded — Biopython unavailable")

    async def verify_binder_design(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        tally.record("sequence_valid", check_protein_sequence(first_str(result, "sequence", "binder_sequence")))
        tally.record("metrics_plausibility", check_metrics_plausibility(result))

        target = first_str(result, "target_protein", "target_uniprot")
        if not target:
            tally.record("target_valid", neutral("No target protein specified"))
        else:
            res = await fetch_json(f"{UNIPROT_API}/{quote(target, safe='')}")
            if res.ok:
                tally.record("target_valid", {"score": 1.0, "target": target, "found": True})
            elif res.status in (400, 404):
                tally.record(
                    "target_valid",
                    {
                        "score": 0.3,
                        "target": target,
                        "found": False,
                        "warning": f"Target {target} not found in UniProt",
                    },
                )
            else:
                tally.record(
                    "target_valid", neutral("UniProt unavailable", warning=f"UniProt lookup failed: {res.error}")
                )

        tally.record("interface_quality", neutral("Interface analysis unavailable — neutral score"))
        tally.warn("Interface/structural checks degraded — Biopython unavailable")

    async def verify_rna_structure(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        dot_bracket = first_str(result, "dot_bracket")
        sequence = first_str(result, "sequence", "rna_sequence")
        tally.record("dot_bracket_valid", check_dot_bracket(dot_bracket, sequence))

        raw_mfe = result.get("mfe")
        mfe = to_num(raw_mfe)
        if raw_mfe is None:
            tally.record("energy_plausible", neutral("No MFE claimed"))
        elif mfe is None:
            tally.record("energy_plausible", {"score": 0.0, "mfe": raw_mfe, "error": f"MFE {raw_mfe} is not numeric"})
        elif mfe <= 0:
            tally.record("energy_plausible", {"score": 1.0, "mfe": mfe, "plausible": True})
        else:
            tally.record(
                "energy_plausible",
                {"score": 0.2, "mfe": mfe, "plausible": False, "warning": f"Positive MFE {mfe} is implausible"},
            )

        rfam_id = first_str(result, "rfam_id", "rfam_family")
        if not rfam_id:
            tally.record("rfam_check", neutral("No Rfam ID"))
        else:
            res = await fetch_json(f"{RFAM_API}/{quote(rfam_id, safe='')}")
            if res.ok:
                tally.record("rfam_check", {"score": 1.0, "rfam_id": rfam_id, "found": True})
            elif res.status in (400, 404):
                tally.record(
                    "rfam_check",
                    {"score": 0.0, "rfam_id": rfam_id, "found": False, "error": f"Rfam family {rfam_id} not found"},
                )
            else:
                tally.record("rfam_check", neutral("Rfam unavailable", warning=f"Rfam lookup failed: {res.error}"))

        tally.record("base_pairs_valid", check_base_pairs(dot_bracket, sequence))

    async def verify_structure_comparison(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        tally.record("pdb_ids_valid", await self._pdb_entries(result))

        raw_rmsd = result.get("rmsd")
        rmsd = to_num(raw_rmsd)
        if raw_rmsd is None:
            tally.record("rmsd_plausible", neutral("No RMSD claimed"))
        elif rmsd is None or rmsd < 0:
            tally.record("rmsd_plausible", {"score": 0.0, "rmsd": raw_rmsd, "error": f"RMSD {raw_rmsd} is invalid"})
        elif rmsd <= 50:
            tally.record("rmsd_plausible", {"score": 1.0, "rmsd": rmsd})
        else:
            tally.record("rmsd_plausible", {"score": 0.3, "rmsd": rmsd, "warning": f"RMSD {rmsd} Å is very large"})

        raw_tm = result.get("tm_score")
        tm_score = to_num(raw_tm)
        if raw_tm is None:
            tally.record("tm_score_consistent", neutral("No TM-score claimed"))
        elif tm_score is not None and 0 <= tm_score <= 1:
            tally.record("tm_score_consistent", {"score": 1.0, "tm_score": tm_score})
        else:
            tally.record(
                "tm_score_consistent",
                {"score": 0.0, "tm_score": raw_tm, "error": f"TM-score {raw_tm} outside [0, 1]"},
            )

        length = to_num(result.get("alignment_length"))
        if length is not None and length > 0:
            tally.record("alignment_plausible", {"score": 1.0, "alignment_length": length})
        else:
            tally.record("alignment_plausible", neutral("No alignment length"))

    async def _pdb_entries(self, result: Dict[str, Any]) -> Dict[str, Any]:
        ids = [to_str(result.get(k)).upper() for k in ("pdb_id_1", "pdb_id_2") if to_str(result.get(k))]
        if not ids:
            return neutral("No PDB IDs provided")

        valid = 0
        checked = 0
        problems = []
        for pdb_id in ids:
            if not PDB_ID_RE.match(pdb_id):
                checked += 1
                problems.append(f"{pdb_id} is not a valid PDB ID")
                continue
            res = await fetch_json(f"{RCSB_ENTRY_API}/{pdb_id}")
            if res.ok:
                checked += 1
                valid += 1
            elif res.status == 404:
                checked += 1
                problems.append(f"PDB entry {pdb_id} not found")

        if checked == 0:
            return neutral("RCSB PDB unavailable", ids=ids, warning="Could not reach RCSB PDB")

        check: Dict[str, Any] = {"score": round4(valid / checked), "valid": valid, "checked": checked, "ids": ids}
        if problems:
            check["error"] = "; ".join(problems)
        return check


def check_protein_sequence(sequence: str) -> Dict[str, Any]:
    if not sequence:
        return neutral("No sequence provided")
    upper = sequence.strip().upper()
    invalid = sum(1 for aa in upper if aa not in VALID_AMINO_ACIDS)
    fraction_valid = (len(upper) - invalid) / len(upper) if upper else 0.0
    check: Dict[str, Any] = {
        "score": 1.0 if invalid == 0 else round4(fraction_valid * 0.5),
        "length": len(upper),
        "invalid_residues": invalid,
        "fraction_valid": round4(fraction_valid),
    }
    if invalid:
        check["warning"] = f"{invalid} residues outside the 20 standard amino acids"
    return check


def check_metrics_plausibility(result: Dict[str, Any]) -> Dict[str, Any]:
    """pLDDT in [0, 100] and pTM in [0, 1]; near-perfect values are penalised as suspicious."""
    plddt = to_num(result.get("plddt"))
    ptm = to_num(result.get("ptm"))
    if plddt is None and ptm is None:
        return neutral("No metrics to check")

    score = 1.0
    issues = []
    out_of_range = []
    if plddt is not None:
        if not 0 <= plddt <= 100:
            out_of_range.append(f"pLDDT {plddt} outside [0,100]")
            score -= 0.5
        elif plddt > 95:
            issues.append(f"pLDDT {plddt} suspiciously high")
            score -= 0.2
    if ptm is not None:
        if not 0 <= ptm <= 1:
            out_of_range.append(f"pTM {ptm} outside [0,1]")
            score -= 0.5
        elif ptm > 0.95:
            issues.append(f"pTM {ptm} suspiciously high")
            score -= 0.2

    check: Dict[str, Any] = {"score": round4(max(0.0, score)), "issues": issues + out_of_range}
    if out_of_range:
        check["error"] = "; ".join(out_of_range)
    elif issues:
        check["warning"] = "; ".join(issues)
    return check


def check_dot_bracket(dot_bracket: str, sequence: str) -> Dict[str, Any]:
    if not dot_bracket:
        return neutral("No dot-bracket notation")
    if sequence and len(dot_bracket) != len(sequence):
        return {"score": 0.2, "error": "Length mismatch between sequence and structure"}

    depth = 0
    for ch in dot_bracket:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if depth < 0:
            return {"score": 0.0, "error": "Unbalanced brackets"}
    if depth != 0:
        return {"score": 0.0, "error": "Unbalanced brackets"}

    return {"score": 1.0, "length": len(dot_bracket), "n_pairs": dot_bracket.count("(")}


def check_base_pairs(dot_bracket: str, sequence: str) -> Dict[str, Any]:
    if not dot_bracket or not sequence or len(dot_bracket) != len(sequence):
        return neutral("Cannot check base pairs")

    stack = []
    valid_pairs = 0
    total_pairs = 0
    for i, ch in enumerate(dot_bracket):
        if ch == "(":
            stack.append(i)
        elif ch == ")" and stack:
            j = stack.pop()
            total_pairs += 1
            pair = (sequence[j] + sequence[i]).upper().replace("T", "U")
            if pair in CANONICAL_RNA_PAIRS:
                valid_pairs += 1

    if total_pairs == 0:
        return neutral("No base pairs")
    return {"score": round4(valid_pairs / total_pairs), "valid_pairs": valid_pairs, "total_pairs": total_pairs}
