"""
Metabolomics domain adapter.

Compound identification against HMDB and PubChem, pathway membership via
KEGG links, and spectral sanity checks plus a MassBank library search.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, Optional
from urllib.parse import quote

from sciverify.constants.config import (
    ADDUCT_SHIFTS,
    DEFAULT_ADDUCT,
    HMDB_BASE,
    KEGG_API,
    MASSBANK_API,
    PUBCHEM_API,
)
from sciverify.services.common.coercion import first_present, first_str, round4, squash, to_num, to_str
from sciverify.services.common.http_client import FetchResult, fetch_json, fetch_text
from sciverify.services.verification.adapters.base import ComponentTally, DomainAdapter, neutral

NOT_FOUND = (400, 404)


def xml_tag_value(xml: str, tag: str) -> Optional[str]:
    """Text of the first ``<tag>...</tag>`` element, or None."""
    match = re.search(rf"<{tag}>([^<]*)</{tag}>", xml, re.IGNORECASE)
    return match.group(1).strip() if match else None


def ppm_error(measured: float, theoretical: float) -> float:
    if theoretical == 0:
        return math.inf
    return abs((measured - theoretical) / theoretical) * 1e6


def _kegg_targets(text: str, prefix: str) -> list:
    """Second column of a KEGG ``link`` response with ``prefix`` stripped."""
    targets = []
    for line in text.strip().splitlines():
        parts = line.split("\t")
        if len(parts) >= 2 and parts[1].strip():
            targets.append(parts[1].strip().removeprefix(prefix))
    return targets


def _pubchem_check(inchikey: str, res: FetchResult) -> Dict[str, Any]:
    if res.ok and res.data:
        return {"score": 1.0, "id": inchikey, "source": "PubChem", "found": True}
    if res.status in NOT_FOUND:
        return {
            "score": 0.0,
            "id": inchikey,
            "source": "PubChem",
            "found": False,
            "error": f"InChIKey {inchikey} not found in PubChem",
        }
    return neutral("PubChem unavailable", id=inchikey, warning=f"PubChem lookup failed: {res.error}")


async def _pubchem_by_inchikey(inchikey: str) -> FetchResult:
    return await fetch_json(
        f"{PUBCHEM_API}/compound/inchikey/{quote(inchikey, safe='')}/property/MolecularFormula,MolecularWeight/JSON"
    )


class MetabolomicsAdapter(DomainAdapter):
    domain = "metabolomics"
    component_weights = {
        "compound_identification": {
            "identifier_valid": 0.20,
            "name_match": 0.20,
            "mass_match": 0.25,
            "formula_match": 0.20,
            "pubchem_cross_ref": 0.15,
        },
        "pathway_mapping": {
            "compound_exists": 0.20,
            "pathway_exists": 0.25,
            "compound_in_pathway": 0.30,
            "enzyme_links": 0.25,
        },
        "spectral_match": {
            "precursor_valid": 0.15,
            "adduct_valid": 0.10,
            "fragment_match": 0.35,
            "library_hit": 0.25,
            "mass_accuracy": 0.15,
        },
    }

    # ------------------------------------------------------------------------
    # compound_identification
    # ------------------------------------------------------------------------
    async def verify_compound_identification(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        hmdb_id = first_str(result, "hmdb_id", "identifier")
        inchikey = first_str(result, "inchikey", "inchi_key")
        claimed_name = first_str(result, "name", "compound_name")
        claimed_formula = first_str(result, "formula", "molecular_formula")
        claimed_mz = to_num(first_present(result, "mz", "observed_mz"))
        adduct = first_str(result, "adduct") or DEFAULT_ADDUCT

        hmdb_xml: Optional[str] = None
        pubchem: Optional[FetchResult] = None

        if hmdb_id.startswith("HMDB"):
            res = await fetch_text(f"{HMDB_BASE}/{quote(hmdb_id, safe='')}.xml")
            if res.ok and res.text:
                hmdb_xml = res.text
                tally.record("identifier_valid", {"score": 1.0, "id": hmdb_id, "source": "HMDB", "found": True})
            elif res.status not in NOT_FOUND:
                check = neutral("HMDB unavailable", id=hmdb_id, warning=f"HMDB lookup failed: {res.error}")
                tally.record("identifier_valid", check)
            else:
                tally.record(
                    "identifier_valid",
                    {
                        "score": 0.0,
                        "id": hmdb_id,
                        "source": "HMDB",
                        "found": False,
                        "error": f"HMDB entry {hmdb_id} not found",
                    },
                )
        elif inchikey:
            pubchem = await _pubchem_by_inchikey(inchikey)
            tally.record("identifier_valid", _pubchem_check(inchikey, pubchem))
        else:
            tally.record("identifier_valid", neutral("No HMDB ID or InChIKey provided"))

        if claimed_name and hmdb_xml:
            candidates = [
                value
                for value in (xml_tag_value(hmdb_xml, tag) for tag in ("name", "iupac_name", "traditional_iupac"))
                if value
            ]
            match = any(squash(c) == squash(claimed_name) for c in candidates)
            tally.record(
                "name_match",
                {"score": 1.0 if match else 0.3, "claimed": claimed_name, "db_names": candidates, "match": match},
            )
        else:
            tally.record("name_match", neutral("Cannot verify name (missing data or HMDB XML)"))

        tally.record("mass_match", self._mass_match(claimed_mz, adduct, hmdb_xml))

        if claimed_formula and hmdb_xml:
            db_formula = xml_tag_value(hmdb_xml, "chemical_formula")
            if db_formula:
                match = squash(db_formula) == squash(claimed_formula)
                check = {
                    "score": 1.0 if match else 0.0,
                    "claimed": claimed_formula,
                    "database": db_formula,
                    "match": match,
                }
                if not match:
                    check["warning"] = f"Formula {claimed_formula} does not match HMDB formula {db_formula}"
                tally.record("formula_match", check)
            else:
                tally.record("formula_match", neutral("No formula in HMDB record"))
        else:
            tally.record("formula_match", neutral("Cannot verify formula"))

        if inchikey:
            if pubchem is None:
                pubchem = await _pubchem_by_inchikey(inchikey)
            tally.record("pubchem_cross_ref", _pubchem_check(inchikey, pubchem))
        elif hmdb_xml and xml_tag_value(hmdb_xml, "inchikey"):
            xml_key = xml_tag_value(hmdb_xml, "inchikey")
            res = await _pubchem_by_inchikey(xml_key)
            tally.record(
                "pubchem_cross_ref", {"score": 1.0 if res.ok else 0.3, "found": res.ok, "inchikey_from_hmdb": xml_key}
            )
        else:
            tally.record("pubchem_cross_ref", neutral("No InChIKey available for PubChem cross-reference"))

    @staticmethod
    def _mass_match(claimed_mz: Optional[float], adduct: str, hmdb_xml: Optional[str]) -> Dict[str, Any]:
        if claimed_mz is None or not hmdb_xml:
            return neutral("No m/z or HMDB data for mass comparison")

        # HMDB spells the tag "monisotopic" in its export
        raw = xml_tag_value(hmdb_xml, "monisotopic_molecular_weight") or xml_tag_value(
            hmdb_xml, "monoisotopic_molecular_weight"
        )
        mono_mass = to_num(raw)
        if mono_mass is None or mono_mass <= 0:
            return neutral("Could not extract monoisotopic mass from HMDB")

        expected_mz = mono_mass + ADDUCT_SHIFTS.get(adduct, ADDUCT_SHIFTS[DEFAULT_ADDUCT])
        ppm = ppm_error(claimed_mz, expected_mz)
        check: Dict[str, Any] = {
            "claimed_mz": claimed_mz,
            "expected_mz": round4(expected_mz),
            "adduct": adduct,
            "ppm": round4(ppm),
            "mono_mass": mono_mass,
        }
        if ppm <= 10:
            check["score"] = 1.0
        elif ppm <= 30:
            check.update(score=0.6, warning=f"Mass accuracy {round4(ppm)} ppm (>10 ppm threshold)")
        else:
            check.update(score=0.1, warning=f"Mass accuracy {round4(ppm)} ppm is poor")
        return check

    # ------------------------------------------------------------------------
    # pathway_mapping
    # ------------------------------------------------------------------------
    async def verify_pathway_mapping(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        compound_id = first_str(result, "compound_id", "kegg_compound")
        pathway_id = first_str(result, "pathway_id", "kegg_pathway")
        raw_enzymes = result.get("enzymes")

        for component, entry_id, label in (
            ("compound_exists", compound_id, "compound"),
            ("pathway_exists", pathway_id, "pathway"),
        ):
            if not entry_id:
                tally.record(component, neutral(f"No {label} ID provided"))
                continue
            res = await fetch_text(f"{KEGG_API}/get/{quote(entry_id, safe='')}")
            if res.ok:
                tally.record(component, {"score": 1.0, "id": entry_id, "found": True})
            elif res.status in NOT_FOUND:
                check = {"score": 0.0, "id": entry_id, "found": False, "error": f"KEGG {label} {entry_id} not found"}
                tally.record(component, check)
            else:
                check = neutral("KEGG unavailable", id=entry_id, warning=f"KEGG lookup failed: {res.error}")
                tally.record(component, check)

        if not (compound_id and pathway_id):
            tally.record("compound_in_pathway", neutral("Need both compound and pathway IDs"))
        else:
            res = await fetch_text(f"{KEGG_API}/link/compound/{quote(pathway_id, safe='')}")
            if res.ok and res.text:
                compounds = _kegg_targets(res.text, "cpd:")
                found = compound_id.removeprefix("cpd:") in compounds
                check = {"score": 1.0 if found else 0.0, "found": found, "compounds_in_pathway": len(compounds)}
                if not found:
                    check["warning"] = f"{compound_id} not found in pathway {pathway_id}"
                tally.record("compound_in_pathway", check)
            else:
                tally.record("compound_in_pathway", neutral("Could not fetch compound-pathway links"))

        if not compound_id or raw_enzymes in (None, "", []):
            tally.record("enzyme_links", neutral("No enzyme data to verify"))
            return

        claimed = [to_str(e) for e in raw_enzymes] if isinstance(raw_enzymes, list) else [to_str(raw_enzymes)]
        res = await fetch_text(f"{KEGG_API}/link/enzyme/{quote(compound_id, safe='')}")
        if not (res.ok and res.text):
            tally.record("enzyme_links", neutral("Could not fetch enzyme links from KEGG"))
            return

        db_enzymes = set(_kegg_targets(res.text, "ec:"))
        matched = [e for e in claimed if e.removeprefix("ec:") in db_enzymes]
        tally.record(
            "enzyme_links",
            {
                "score": len(matched) / len(claimed),
                "claimed": claimed,
                "database": sorted(db_enzymes),
                "matched": len(matched),
            },
        )

    # ------------------------------------------------------------------------
    # spectral_match
    # ------------------------------------------------------------------------
    async def verify_spectral_match(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        precursor_mz = to_num(first_present(result, "precursor_mz", "mz"))
        adduct = first_str(result, "adduct")
        peaks = first_present(result, "peaks", "fragments", "peak_list")
        tolerance = to_num(first_present(result, "ppm_tolerance", "mass_accuracy"))

        if precursor_mz is None:
            tally.record("precursor_valid", neutral("No precursor m/z provided"))
        elif 50 <= precursor_mz <= 2000:
            tally.record("precursor_valid", {"score": 1.0, "mz": precursor_mz})
        elif 20 <= precursor_mz <= 5000:
            tally.record(
                "precursor_valid",
                {
                    "score": 0.5,
                    "mz": precursor_mz,
                    "warning": f"Precursor m/z {precursor_mz} outside typical 50-2000 range",
                },
            )
        else:
            tally.record(
                "precursor_valid",
                {"score": 0.0, "mz": precursor_mz, "error": f"Precursor m/z {precursor_mz} implausible"},
            )

        if not adduct:
            tally.record("adduct_valid", neutral("No adduct specified"))
        else:
            known = adduct in ADDUCT_SHIFTS
            tally.record("adduct_valid", {"score": 1.0 if known else 0.3, "value": adduct, "known": known})

        if isinstance(peaks, list) and peaks:
            tally.record("fragment_match", self._peak_list_check(peaks))
        else:
            tally.record("fragment_match", neutral("No peak list provided"))

        if precursor_mz is None:
            tally.record("library_hit", neutral("No precursor m/z for library search"))
        else:
            res = await fetch_json(f"{MASSBANK_API}/searchspectrum?mz={precursor_mz}&tol=0.5&unit=Da&limit=5")
            if res.ok and isinstance(res.data, list) and res.data:
                tally.record("library_hit", {"score": 1.0, "source": "MassBank", "hits": len(res.data)})
            elif res.ok:
                tally.record("library_hit", {"score": 0.3, "source": "MassBank", "hits": 0})
            else:
                tally.record(
                    "library_hit",
                    neutral(
                        "MassBank query failed",
                        error_detail=res.error,
                        warning="Could not query MassBank spectral library",
                    ),
                )

        if tolerance is None:
            tally.record("mass_accuracy", neutral("No ppm tolerance specified"))
        elif 1 <= tolerance <= 20:
            tally.record("mass_accuracy", {"score": 1.0, "ppm": tolerance})
        elif 0.1 <= tolerance <= 50:
            tally.record("mass_accuracy", {"score": 0.7, "ppm": tolerance})
        else:
            tally.record(
                "mass_accuracy",
                {"score": 0.3, "ppm": tolerance, "warning": f"Unusual mass accuracy tolerance: {tolerance} ppm"},
            )

    @staticmethod
    def _peak_list_check(peaks: list) -> Dict[str, Any]:
        valid = 0
        ordered = True
        previous = -math.inf
        for peak in peaks:
            if not isinstance(peak, (list, tuple)) or len(peak) < 2:
                continue
            mz, intensity = to_num(peak[0]), to_num(peak[1])
            if mz is None or mz <= 0 or intensity is None or intensity < 0:
                continue
            valid += 1
            if mz < previous:
                ordered = False
            previous = mz

        score = valid / len(peaks)
        check: Dict[str, Any] = {"total": len(peaks), "valid": valid, "sorted": ordered}
        if not ordered:
            score *= 0.8
            check["warning"] = "Peak list not sorted by m/z"
        check["score"] = score
        return check
