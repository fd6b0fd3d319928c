"""
Immunoinformatics domain adapter.

Verifies T-cell epitope predictions, MHC binding affinities and B-cell
epitopes using the IEDB tools API (form-encoded POST, tab-separated
responses), UniProt and Kyte-Doolittle hydropathy.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, Optional
from urllib.parse import quote

from sciverify.constants.config import (
    IC50_STRONG_BINDER_NM,
    IC50_WEAK_BINDER_NM,
    IEDB_TOOLS_API,
    KYTE_DOOLITTLE,
    ORTHOLOG_DATABASES,
    UNIPROT_API,
)
from sciverify.services.common.coercion import as_dict_list, first_present, first_str, round4, squash, to_num, to_str
from sciverify.services.common.http_client import FetchResult, fetch_json, fetch_text
from sciverify.services.verification.adapters.base import ComponentTally, DomainAdapter, neutral

STANDARD_AMINO_ACIDS = frozenset("ACDEFGHIKLMNPQRSTVWY")
STRICT_ALLELE_RE = re.compile(r"^HLA-[A-Z]+\d?\*\d{2,4}:\d{2,4}$")
RELAXED_ALLELE_RE = re.compile(r"^HLA-[A-Z]+", re.IGNORECASE)
CLASS_II_LABELS = frozenset({"ii", "mhc-ii", "class_ii", "2"})


def is_valid_peptide(sequence: str) -> bool:
    return bool(sequence) and all(c in STANDARD_AMINO_ACIDS for c in sequence.upper())


def mean_hydropathy(sequence: str) -> float:
    if not sequence:
        return 0.0
    return sum(KYTE_DOOLITTLE.get(c, 0.0) for c in sequence.upper()) / len(sequence)


def allele_format_score(allele: str) -> float:
    """1.0 for HLA-A*02:01 style names, 0.7 for looser HLA- names, else 0.3."""
    if STRICT_ALLELE_RE.match(allele):
        return 1.0
    if RELAXED_ALLELE_RE.match(allele):
        return 0.7
    return 0.3


def expected_binder_class(ic50: float) -> str:
    if ic50 <= IC50_STRONG_BINDER_NM:
        return "strong"
    if ic50 <= IC50_WEAK_BINDER_NM:
        return "weak"
    return "non-binder"


def parse_iedb_ic50(text: str) -> Optional[float]:
    """
    First predicted IC50 in an IEDB tab-separated response.

    Uses the ``ic50`` column when the header names one, otherwise the last
    column of the first row whose value parses as a positive number.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return None

    header = [h.strip().lower() for h in lines[0].split("\t")]
    column = header.index("ic50") if "ic50" in header else -1
    for line in lines[1:] if column >= 0 else lines:
        fields = line.split("\t")
        if len(fields) <= column:
            continue
        value = to_num(fields[column])
        if value is not None and value > 0:
            return value
    return None


def _allele_check(allele: str) -> Dict[str, Any]:
    score = allele_format_score(allele)
    check: Dict[str, Any] = {"score": score, "value": allele}
    if score < 1.0:
        check["warning"] = f"Allele '{allele}' is not in standard HLA-X*NN:NN nomenclature"
    return check


async def _uniprot_entry(protein_id: str) -> FetchResult:
    return await fetch_json(f"{UNIPROT_API}/{quote(protein_id, safe='')}")


def _source_protein_check(protein_id: str, res: FetchResult) -> Dict[str, Any]:
    if res.ok and res.data:
        name = res.data.get("proteinDescription") if isinstance(res.data, dict) else None
        return {"score": 1.0, "id": protein_id, "found": True, "name": name}
    if res.status in (400, 404):
        return {"score": 0.0, "id": protein_id, "found": False, "error": f"UniProt entry {protein_id} not found"}
    return neutral("UniProt unavailable", id=protein_id, warning=f"UniProt lookup failed: {res.error}")


class ImmunoinformaticsAdapter(DomainAdapter):
    domain = "immunoinformatics"
    component_weights = {
        "epitope_prediction": {
            "peptide_valid": 0.15,
            "source_protein_valid": 0.20,
            "peptide_in_source": 0.20,
            "iedb_score_check": 0.25,
            "allele_valid": 0.20,
        },
        "mhc_binding": {
            "allele_valid": 0.20,
            "peptide_length_valid": 0.15,
            "binding_affinity_recomputed": 0.35,
            "classification_consistent": 0.30,
        },
        "bcell_epitope": {
            "sequence_valid": 0.15,
            "source_protein_valid": 0.20,
            "surface_accessibility": 0.25,
            "iedb_bcell_check": 0.25,
            "conservation_check": 0.15,
        },
    }

    # ------------------------------------------------------------------------
    # epitope_prediction
    # ------------------------------------------------------------------------
    async def verify_epitope_prediction(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        peptide = first_str(result, "peptide", "sequence", "epitope").upper()
        protein_id = first_str(result, "protein_id", "uniprot_id", "source_protein")
        allele = first_str(result, "allele", "hla_allele")

        if not peptide:
            tally.record("peptide_valid", neutral("No peptide sequence provided"))
        else:
            valid = is_valid_peptide(peptide)
            length_ok = 8 <= len(peptide) <= 15
            check: Dict[str, Any] = {
                "sequence": peptide,
                "length": len(peptide),
                "valid": valid,
                "length_ok": length_ok,
            }
            if valid and length_ok:
                check["score"] = 1.0
            elif valid:
                check.update(score=0.5, warning=f"Peptide length {len(peptide)} outside typical 8-15 range")
            else:
                check.update(score=0.0, error="Peptide contains non-standard amino acids")
            tally.record("peptide_valid", check)

        if not protein_id:
            tally.record("source_protein_valid", neutral("No protein ID provided"))
        else:
            tally.record("source_protein_valid", _source_protein_check(protein_id, await _uniprot_entry(protein_id)))

        if not (peptide and protein_id):
            tally.record("peptide_in_source", neutral("Need both peptide and protein ID"))
        else:
            fasta = await fetch_text(f"{UNIPROT_API}/{quote(protein_id, safe='')}.fasta")
            if fasta.ok and fasta.text:
                full = "".join(line for line in fasta.text.splitlines() if not line.startswith(">")).upper()
                found = peptide in full
                check = {"score": 1.0 if found else 0.0, "found": found, "protein_length": len(full)}
                if not found:
                    check["error"] = "Peptide not found in source protein sequence"
                tally.record("peptide_in_source", check)
            else:
                tally.record(
                    "peptide_in_source",
                    neutral("Could not fetch FASTA", warning="Failed to retrieve protein FASTA for peptide matching"),
                )

        if not (peptide and allele):
            tally.record("iedb_score_check", neutral("Need peptide and allele for IEDB check"))
        else:
            res = await fetch_text(
                f"{IEDB_TOOLS_API}/mhci/",
                method="POST",
                form={"method": "recommended", "sequence_text": peptide, "allele": allele, "length": str(len(peptide))},
            )
            if res.ok and res.text and res.text.strip():
                check = {"score": 0.8, "success": True, "note": "IEDB prediction returned data"}
                tally.record("iedb_score_check", check)
            else:
                tally.record(
                    "iedb_score_check",
                    neutral("IEDB unavailable", success=False, warning="IEDB MHC-I prediction returned no usable data"),
                )

        if not allele:
            tally.record("allele_valid", neutral("No allele provided"))
        else:
            tally.record("allele_valid", _allele_check(allele))

    # ------------------------------------------------------------------------
    # mhc_binding
    # ------------------------------------------------------------------------
    async def verify_mhc_binding(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        peptide = first_str(result, "peptide", "sequence").upper()
        allele = first_str(result, "allele", "hla_allele")
        mhc_class = first_str(result, "mhc_class", "class").lower()
        class_ii = mhc_class in CLASS_II_LABELS
        raw_ic50 = first_present(result, "ic50", "binding_affinity")
        ic50 = to_num(raw_ic50)
        classification = first_str(result, "classification", "binding_level").lower()

        if not allele:
            tally.record("allele_valid", neutral("No allele provided"))
        else:
            tally.record("allele_valid", _allele_check(allele))

        if not peptide:
            tally.record("peptide_length_valid", neutral("No peptide provided"))
        else:
            length = len(peptide)
            length_valid = 13 <= length <= 25 if class_ii else 8 <= length <= 11
            valid_aa = is_valid_peptide(peptide)
            check = {"sequence": peptide, "length": length, "valid_aa": valid_aa, "length_valid": length_valid}
            if valid_aa and length_valid:
                check["score"] = 1.0
            elif valid_aa:
                label = "II" if class_ii else "I"
                check.update(score=0.4, warning=f"Peptide length {length} outside expected range for MHC class {label}")
            else:
                check.update(score=0.0, error="Peptide contains non-standard amino acids")
            tally.record("peptide_length_valid", check)

        if raw_ic50 is not None and (ic50 is None or ic50 <= 0):
            tally.record(
                "binding_affinity_recomputed", {"score": 0.0, "ic50": raw_ic50, "error": f"IC50 {raw_ic50} must be > 0"}
            )
        elif not (peptide and allele):
            tally.record("binding_affinity_recomputed", neutral("Need peptide and allele for binding prediction"))
        elif ic50 is None:
            tally.record("binding_affinity_recomputed", neutral("No IC50 claimed to compare"))
        else:
            tally.record("binding_affinity_recomputed", await self._iedb_affinity(peptide, allele, ic50, class_ii))

        if ic50 is None or ic50 <= 0:
            tally.record("classification_consistent", neutral("No IC50 provided for classification check"))
        elif not classification:
            tally.record("classification_consistent", neutral("No classification claimed to verify"))
        else:
            expected = expected_binder_class(ic50)
            claimed = squash(classification)
            consistent = squash(expected) in claimed or claimed in squash(expected)
            check = {
                "score": 1.0 if consistent else 0.2,
                "ic50": ic50,
                "expected": expected,
                "claimed": classification,
                "consistent": consistent,
            }
            if not consistent:
                check["warning"] = f'IC50={ic50} nM suggests "{expected}" but claimed "{classification}"'
            tally.record("classification_consistent", check)

    async def _iedb_affinity(self, peptide: str, allele: str, ic50: float, class_ii: bool) -> Dict[str, Any]:
        endpoint = "mhcii" if class_ii else "mhci"
        res = await fetch_text(
            f"{IEDB_TOOLS_API}/{endpoint}/",
            method="POST",
            form={"method": "recommended", "sequence_text": peptide, "allele": allele, "length": str(len(peptide))},
        )
        if not res.ok or not res.text:
            return neutral(
                "IEDB prediction unavailable",
                iedb_error=res.error,
                warning="Could not recompute binding affinity via IEDB",
            )

        predicted = parse_iedb_ic50(res.text)
        if predicted is None:
            return neutral("IEDB returned data but could not extract IC50")

        log_diff = abs(math.log10(ic50) - math.log10(predicted))
        if log_diff <= 0.5:
            score = 1.0
        elif log_diff <= 1.0:
            score = 0.6
        else:
            score = 0.2
        check = {"score": score, "claimed_ic50": ic50, "predicted_ic50": predicted, "log_diff": round4(log_diff)}
        if score < 0.5:
            check["warning"] = f"Claimed IC50 {ic50} nM is >10x off IEDB prediction {predicted} nM"
        return check

    # ------------------------------------------------------------------------
    # bcell_epitope
    # ------------------------------------------------------------------------
    async def verify_bcell_epitope(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        sequence = first_str(result, "sequence", "peptide", "epitope").upper()
        protein_id = first_str(result, "protein_id", "uniprot_id", "source_protein")

        if not sequence:
            tally.record("sequence_valid", neutral("No sequence provided"))
            tally.record("surface_accessibility", neutral("No sequence for hydrophobicity analysis"))
            tally.record("iedb_bcell_check", neutral("No sequence for IEDB B-cell prediction"))
        else:
            valid = is_valid_peptide(sequence)
            length_ok = 5 <= len(sequence) <= 50
            check: Dict[str, Any] = {"value": sequence, "length": len(sequence), "valid": valid, "length_ok": length_ok}
            if valid and length_ok:
                check["score"] = 1.0
            elif valid:
                check.update(score=0.5, warning=f"B-cell epitope length {len(sequence)} outside typical 5-50 range")
            else:
                check.update(score=0.0, error="Sequence contains non-standard amino acids")
            tally.record("sequence_valid", check)

            hydropathy = mean_hydropathy(sequence)
            if hydropathy < -1:
                score = 1.0
            elif hydropathy < 0:
                score = 0.7
            elif hydropathy < 1:
                score = 0.4
            else:
                score = 0.2
            tally.record(
                "surface_accessibility",
                {
                    "score": score,
                    "avg_hydrophobicity": round4(hydropathy),
                    "note": "Kyte-Doolittle scale; lower = more hydrophilic = more surface accessible",
                },
            )

            res = await fetch_text(
                f"{IEDB_TOOLS_API}/bcell/", method="POST", form={"method": "Bepipred", "sequence_text": sequence}
            )
            if res.ok and res.text and res.text.strip():
                tally.record("iedb_bcell_check", {"score": 0.8, "success": True})
            else:
                tally.record(
                    "iedb_bcell_check",
                    neutral("IEDB unavailable", success=False, warning="IEDB B-cell prediction returned no data"),
                )

        if not protein_id:
            tally.record("source_protein_valid", neutral("No protein ID provided"))
            tally.record("conservation_check", neutral("No protein ID for conservation check"))
            return

        entry = await _uniprot_entry(protein_id)
        tally.record("source_protein_valid", _source_protein_check(protein_id, entry))
        if not (entry.ok and isinstance(entry.data, dict)):
            tally.record("conservation_check", neutral("Could not fetch UniProt data for conservation"))
            return

        xrefs = as_dict_list(entry.data.get("uniProtKBCrossReferences"))
        xref_databases = (to_str(xref.get("database")) for xref in xrefs)
        databases = {name for name in xref_databases if name in ORTHOLOG_DATABASES}
        count = len(databases)
        score = 1.0 if count >= 2 else (0.7 if count == 1 else 0.4)
        tally.record(
            "conservation_check", {"score": score, "ortholog_databases": count, "databases": sorted(databases)}
        )
