"""
Bioinformatics domain adapter.

Verifies sequence analysis results, alignment outputs and pipeline
descriptions using UniProt, NCBI Entrez, Ensembl and curated tool/database
vocabularies.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Dict, Iterable
from urllib.parse import quote

from sciverify.constants.config import (
    ENSEMBL_API,
    KNOWN_ALIGNMENT_TOOLS,
    KNOWN_ANALYSIS_TOOLS,
    KNOWN_PIPELINE_TOOLS,
    KNOWN_SEQUENCE_DATABASES,
    NCBI_ESEARCH,
    PIPELINE_ANALYSIS_KEYWORDS,
    PIPELINE_INPUT_FORMATS,
    PIPELINE_OUTPUT_FORMATS,
    PIPELINE_QC_KEYWORDS,
    UNIPROT_API,
)
from sciverify.services.common.coercion import (
    as_string_array,
    extract_nested,
    first_present,
    first_str,
    round4,
    squash,
    to_num,
    to_str,
)
from sciverify.services.common.http_client import fetch_json
from sciverify.services.verification.adapters.base import ComponentTally, DomainAdapter, neutral

UNIPROT_ACCESSION_RE = re.compile(r"^[A-NR-Z][0-9][A-Z0-9]{3}[0-9]$", re.IGNORECASE)
NUCLEOTIDE_RE = re.compile(r"^[ACGTURYKMSWBDHVN]+$", re.IGNORECASE)
PROTEIN_RE = re.compile(r"^[ACDEFGHIKLMNPQRSTVWYX*-]+$", re.IGNORECASE)
ALIGNED_NUCLEOTIDE_RE = re.compile(r"^[ACGTURYKMSWBDHVN\-.*]+$", re.IGNORECASE)
ALIGNED_PROTEIN_RE = re.compile(r"^[ACDEFGHIKLMNPQRSTVWYX*\-. ]+$", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s")
_STEP_SPLIT_RE = re.compile(r"[;\n|]+")


def recognised(name: str, vocabulary: Iterable[str]) -> bool:
    """Loose containment match of ``name`` against a vocabulary."""
    norm = squash(name)
    return any(squash(term) in norm for term in vocabulary)


def strip_fasta(text: str) -> str:
    """Raw residues from a FASTA record or bare sequence."""
    lines = text.strip().split("\n")
    body = lines[1:] if lines and lines[0].startswith(">") else lines
    return _WHITESPACE_RE.sub("", "".join(body))


def _esearch_count(data: Any) -> float:
    return to_num(extract_nested(data, "esearchresult.count"), 0.0)


class BioinformaticsAdapter(DomainAdapter):
    domain = "bioinformatics"
    component_weights = {
        "sequence_analysis": {
            "identifier_valid": 0.25,
            "format_valid": 0.20,
            "method_valid": 0.20,
            "statistics_valid": 0.20,
            "database_valid": 0.15,
        },
        "alignment": {
            "sequences_valid": 0.25,
            "method_valid": 0.20,
            "identity_plausible": 0.25,
            "gap_analysis": 0.15,
            "score_valid": 0.15,
        },
        "pipeline_validation": {
            "tools_valid": 0.30,
            "steps_coherent": 0.25,
            "input_valid": 0.20,
            "output_valid": 0.25,
        },
    }

    # ------------------------------------------------------------------------
    # sequence_analysis
    # ------------------------------------------------------------------------
    async def verify_sequence_analysis(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        seq_id = first_str(result, "sequence_id", "accession", "identifier", "id")
        tally.record("identifier_valid", await self._identifier(seq_id))
        tally.record("format_valid", self._sequence_format(first_str(result, "sequence", "fasta", "seq")))
        tally.record(
            "method_valid",
            _tool_check(first_str(result, "method", "tool", "algorithm"), KNOWN_ANALYSIS_TOOLS, "Analysis"),
        )
        tally.record("statistics_valid", self._search_statistics(result))

        database = first_str(result, "database", "db")
        if not database:
            tally.record("database_valid", neutral("No database specified"))
        else:
            found = recognised(database, KNOWN_SEQUENCE_DATABASES)
            check = {"score": 1.0 if found else 0.2, "claimed": database, "recognized": found}
            if not found:
                check["warning"] = f'Database "{database}" not in known databases list'
            tally.record("database_valid", check)

    async def _identifier(self, seq_id: str) -> Dict[str, Any]:
        if not seq_id:
            return neutral("No sequence ID provided")

        encoded = quote(seq_id, safe="")
        if UNIPROT_ACCESSION_RE.match(seq_id):
            res = await fetch_json(f"{UNIPROT_API}/{encoded}")
            if res.ok and res.data:
                return {"score": 1.0, "id": seq_id, "source": "UniProt", "found": True}
            protein = await fetch_json(f"{NCBI_ESEARCH}?db=protein&term={encoded}&retmode=json")
            if not res.ok and not protein.ok and res.status != 404:
                return neutral("UniProt and NCBI unreachable", id=seq_id, warning="Identifier lookup unavailable")
            if _esearch_count(protein.data) > 0:
                return {"score": 0.8, "id": seq_id, "source": "ncbi_protein", "found": True}
            return {
                "score": 0.0,
                "id": seq_id,
                "source": "not_found",
                "found": False,
                "error": f"Sequence ID {seq_id} not found in UniProt or NCBI",
            }

        nucleotide, protein = await asyncio.gather(
            fetch_json(f"{NCBI_ESEARCH}?db=nucleotide&term={encoded}&retmode=json"),
            fetch_json(f"{NCBI_ESEARCH}?db=protein&term={encoded}&retmode=json"),
        )
        nuc_count = _esearch_count(nucleotide.data)
        prot_count = _esearch_count(protein.data)
        if nuc_count > 0 or prot_count > 0:
            source = "ncbi_nucleotide" if nuc_count > 0 else "ncbi_protein"
            return {"score": 1.0, "id": seq_id, "source": source, "found": True}

        ensembl = await fetch_json(f"{ENSEMBL_API}/lookup/id/{encoded}?content-type=application/json")
        if ensembl.ok and ensembl.data:
            return {"score": 1.0, "id": seq_id, "source": "ensembl", "found": True}
        if not (nucleotide.ok or protein.ok or ensembl.status in (400, 404)):
            return neutral("NCBI and Ensembl unreachable", id=seq_id, warning="Identifier lookup unavailable")
        return {
            "score": 0.0,
            "id": seq_id,
            "source": "not_found",
            "found": False,
            "error": f"Sequence ID {seq_id} not found in NCBI, UniProt, or Ensembl",
        }

    def _sequence_format(self, sequence: str) -> Dict[str, Any]:
        if not sequence:
            return neutral("No sequence provided")

        has_header = sequence.strip().startswith(">")
        raw = strip_fasta(sequence)
        if not raw:
            return {"score": 0.0, "valid": False, "note": "Empty sequence", "error": "Sequence is empty"}

        is_nucleotide = bool(NUCLEOTIDE_RE.match(raw))
        if is_nucleotide or PROTEIN_RE.match(raw):
            return {
                "score": 1.0,
                "has_fasta_header": has_header,
                "sequence_length": len(raw),
                "type": "nucleotide" if is_nucleotide else "protein",
                "valid": True,
            }
        return {
            "score": 0.2,
            "valid": False,
            "note": "Sequence contains invalid characters",
            "warning": "Sequence contains characters not matching nucleotide or protein alphabets",
        }

    def _search_statistics(self, result: Dict[str, Any]) -> Dict[str, Any]:
        checks = 0
        passed = 0
        problems = []
        values: Dict[str, Any] = {}

        e_value = first_present(result, "e_value", "evalue")
        if e_value is not None:
            checks += 1
            e = to_num(e_value)
            values["e_value"] = e_value
            if e is not None and e >= 0:
                passed += 1
            else:
                problems.append(f"E-value {e_value} is negative")

        percent_fields = (("Identity", ("identity", "percent_identity")), ("Coverage", ("coverage", "query_coverage")))
        for label, keys in percent_fields:
            raw = first_present(result, *keys)
            if raw is None:
                continue
            checks += 1
            value = to_num(raw)
            values[label.lower()] = raw
            if value is not None and 0 <= value <= 100:
                passed += 1
            else:
                problems.append(f"{label} {raw} out of [0, 100] range")

        if checks == 0:
            return neutral("No statistics provided (e-value, identity, coverage)")

        check: Dict[str, Any] = {"score": round4(passed / checks), "checks": checks, "passed": passed, **values}
        if problems:
            check["error"] = "; ".join(problems)
        return check

    # ------------------------------------------------------------------------
    # alignment
    # ------------------------------------------------------------------------
    async def verify_alignment(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        tally.record("sequences_valid", self._alignment_inputs(result))
        tally.record(
            "method_valid",
            _tool_check(first_str(result, "method", "tool", "algorithm"), KNOWN_ALIGNMENT_TOOLS, "Alignment"),
        )

        identity = first_present(result, "identity", "percent_identity", "sequence_identity")
        if identity is None:
            tally.record("identity_plausible", neutral("No sequence identity provided"))
        else:
            value = to_num(identity)
            if value is not None and 0 <= value <= 100:
                tally.record("identity_plausible", {"score": 1.0, "value": value, "valid": True})
            else:
                tally.record(
                    "identity_plausible",
                    {
                        "score": 0.0,
                        "value": identity,
                        "valid": False,
                        "error": f"Sequence identity {identity} out of [0, 100] range",
                    },
                )

        tally.record("gap_analysis", _gap_check(first_present(result, "gap_percentage", "gaps", "gap_fraction")))
        tally.record("score_valid", _alignment_score(first_present(result, "score", "alignment_score", "bit_score")))

    def _alignment_inputs(self, result: Dict[str, Any]) -> Dict[str, Any]:
        sequences = result.get("sequences") or result.get("input_sequences")

        if isinstance(sequences, list) and sequences:
            sample = sequences[:20]
            valid = 0
            for item in sample:
                raw = strip_fasta(to_str(item))
                if raw and (ALIGNED_NUCLEOTIDE_RE.match(raw) or ALIGNED_PROTEIN_RE.match(raw)):
                    valid += 1
            check: Dict[str, Any] = {
                "score": round4(valid / len(sample)),
                "total": len(sequences),
                "sampled": len(sample),
                "valid": valid,
            }
            if valid < len(sample):
                check["warning"] = f"{len(sample) - valid} of {len(sample)} sampled sequences have invalid characters"
            return check

        if isinstance(sequences, str) and sequences.strip():
            entries = [e for e in sequences.split(">") if e]
            return {"score": 0.8 if entries else 0.2, "format": "multi_fasta_string", "entries": len(entries)}

        query = first_str(result, "query", "query_sequence")
        subject = first_str(result, "subject", "subject_sequence", "target")
        if not query and not subject:
            return neutral("No input sequences provided")
        provided = int(bool(query)) + int(bool(subject))
        return {"score": round4(provided / 2), "query_provided": bool(query), "subject_provided": bool(subject)}

    # ------------------------------------------------------------------------
    # pipeline_validation
    # ------------------------------------------------------------------------
    async def verify_pipeline_validation(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        tools = as_string_array(result.get("tools") or result.get("software") or result.get("pipeline_tools"))
        if not tools:
            tally.record("tools_valid", neutral("No tools listed in pipeline", warning="Pipeline lists no tools"))
        else:
            results = [{"tool": t, "recognized": recognised(t, KNOWN_PIPELINE_TOOLS)} for t in tools]
            hits = sum(1 for r in results if r["recognized"])
            check: Dict[str, Any] = {
                "score": round4(hits / len(tools)),
                "total": len(tools),
                "recognized": hits,
                "results": results,
            }
            if hits == 0:
                check["error"] = "None of the listed tools are recognized bioinformatics software"
            elif hits < len(tools):
                check["warning"] = f"{len(tools) - hits} of {len(tools)} tools not in known tools list"
            tally.record("tools_valid", check)

        steps = result.get("steps") or result.get("pipeline_steps") or result.get("workflow")
        tally.record("steps_coherent", _pipeline_steps(steps))
        tally.record(
            "input_valid",
            _io_description(
                first_present(result, "input", "input_data", "input_files", "input_description"),
                PIPELINE_INPUT_FORMATS,
                "Input",
            ),
        )
        tally.record(
            "output_valid",
            _io_description(
                first_present(result, "output", "output_data", "output_files", "output_description"),
                PIPELINE_OUTPUT_FORMATS,
                "Output",
            ),
        )


def _tool_check(method: str, vocabulary: Iterable[str], label: str) -> Dict[str, Any]:
    if not method:
        return neutral(f"No {label.lower()} method provided")
    found = recognised(method, vocabulary)
    check: Dict[str, Any] = {"score": 1.0 if found else 0.2, "claimed": method, "recognized": found}
    if not found:
        check["warning"] = f'{label} tool "{method}" not in known tools list'
    return check


def _gap_check(raw: Any) -> Dict[str, Any]:
    if raw is None:
        return neutral("No gap percentage provided")
    gap = to_num(raw)
    if gap is None or not 0 <= gap <= 100:
        return {"score": 0.0, "value": raw, "valid": False, "error": f"Gap percentage {raw} out of [0, 100] range"}
    if gap <= 50:
        return {"score": 1.0, "gap_percentage": gap}
    if gap <= 80:
        return {"score": 0.5, "gap_percentage": gap, "warning": f"Gap percentage {gap}% is high, alignment may be poor"}
    return {
        "score": 0.2,
        "gap_percentage": gap,
        "warning": f"Gap percentage {gap}% is very high, alignment is likely unreliable",
    }


def _alignment_score(raw: Any) -> Dict[str, Any]:
    if raw is None:
        return neutral("No alignment score provided")
    value = to_num(raw)
    if value is None or value < 0:
        return {"score": 0.0, "value": raw, "valid": False, "error": f"Alignment score {raw} is negative or invalid"}
    if value == 0:
        return {
            "score": 0.3,
            "value": value,
            "valid": False,
            "note": "Zero alignment score is suspicious",
            "warning": "Alignment score is zero",
        }
    return {"score": 1.0, "value": value, "valid": True}


def _step_label(step: Any) -> str:
    if isinstance(step, dict):
        return first_str(step, "name", "description", "tool")
    return to_str(step)


def _pipeline_steps(steps: Any) -> Dict[str, Any]:
    if isinstance(steps, list):
        if not steps:
            return {"score": 0.0, "count": 0, "coherent": False, "error": "Pipeline steps array is empty"}
        if len(steps) == 1:
            return {
                "score": 0.3,
                "count": 1,
                "coherent": False,
                "note": "Pipeline has only one step",
                "warning": "Pipeline has only a single step; expected multiple steps",
            }

        labels = [_step_label(s).lower() for s in steps]
        first_qc = next((i for i, d in enumerate(labels) if any(k in d for k in PIPELINE_QC_KEYWORDS)), -1)
        first_analysis = next((i for i, d in enumerate(labels) if any(k in d for k in PIPELINE_ANALYSIS_KEYWORDS)), -1)
        if first_qc >= 0 and first_analysis >= 0 and first_qc > first_analysis:
            return {
                "score": 0.6,
                "count": len(steps),
                "coherent": False,
                "note": "QC after analysis",
                "warning": "QC steps appear after analysis steps, unusual pipeline ordering",
            }
        return {"score": 1.0, "count": len(steps), "coherent": True}

    if isinstance(steps, str) and steps.strip():
        lines = [s for s in _STEP_SPLIT_RE.split(steps) if s.strip()]
        if len(lines) > 1:
            return {"score": 0.8, "count": len(lines), "format": "text_description", "coherent": True}
        return {
            "score": 0.4,
            "count": len(lines),
            "format": "text_description",
            "coherent": False,
            "warning": "Pipeline description does not clearly delineate multiple steps",
        }

    return neutral("No pipeline steps provided")


def _io_description(data: Any, formats: Iterable[str], label: str) -> Dict[str, Any]:
    if data is None:
        return neutral(f"No {label.lower()} data description provided")

    text = data if isinstance(data, str) else json.dumps(data, default=str)
    if not text.strip() or text in ("{}", "[]"):
        return {"score": 0.0, "provided": False, "error": f"{label} data description is empty"}

    if any(fmt in text.lower() for fmt in formats):
        return {"score": 1.0, "provided": True, "mentions_known_format": True}
    return {
        "score": 0.7,
        "provided": True,
        "mentions_known_format": False,
        "warning": f"{label} data description does not mention a recognized file format",
    }
