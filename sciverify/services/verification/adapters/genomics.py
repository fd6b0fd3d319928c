"""
Genomics domain adapter.

Verifies variant annotations, gene expression results and GWAS associations
against MyVariant.info, Ensembl (VEP and lookup), NCBI E-utilities, the EBI
GWAS Catalog and BioStudies.
"""

from __future__ import annotations

from typing import Any, Dict, List
from urllib.parse import quote

from sciverify.constants.config import (
    BIOSTUDIES_API,
    ENSEMBL_API,
    GWAS_CATALOG_API,
    MYVARIANT_API,
    NCBI_ESEARCH,
)
from sciverify.services.common.coercion import (
    as_dict_list,
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

MYVARIANT_FIELDS = (
    "dbsnp.rsid,clinvar.rcv.clinical_significance,dbsnp.gene.symbol,cadd.gene.genename,gnomad_genome.af.af"
)


def _as_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [to_str(v) for v in value if to_str(v)]
    text = to_str(value)
    return [text] if text else []


def _esearch_count(data: Any) -> float:
    return to_num(extract_nested(data, "esearchresult.count"), 0.0)


class GenomicsAdapter(DomainAdapter):
    domain = "genomics"
    component_weights = {
        "variant_annotation": {
            "variant_exists": 0.25,
            "consequence_match": 0.25,
            "gene_match": 0.20,
            "clinical_significance": 0.15,
            "population_frequency": 0.15,
        },
        "gene_expression": {
            "gene_exists": 0.20,
            "dataset_exists": 0.25,
            "expression_range": 0.25,
            "statistics_valid": 0.30,
        },
        "gwas_association": {
            "variant_exists": 0.20,
            "gwas_catalog_match": 0.30,
            "pvalue_plausible": 0.25,
            "effect_size_plausible": 0.25,
        },
    }

    # ------------------------------------------------------------------------
    # variant_annotation
    # ------------------------------------------------------------------------
    async def verify_variant_annotation(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        variant_id = first_str(result, "variant_id", "rsid", "hgvs")
        variant_data = None

        if not variant_id:
            tally.record("variant_exists", neutral("No variant ID provided"))
        else:
            variant_data = await self._variant_exists(variant_id, tally)

        tally.record("consequence_match", await self._consequence_match(result, variant_id))
        tally.record("gene_match", self._gene_match(result, variant_data))
        tally.record("clinical_significance", self._clinical_significance(result, variant_data))
        tally.record("population_frequency", self._population_frequency(result, variant_data))

    async def _variant_exists(self, variant_id: str, tally: ComponentTally):
        res = await fetch_json(f"{MYVARIANT_API}/variant/{quote(variant_id, safe='')}?fields={MYVARIANT_FIELDS}")
        if res.ok and isinstance(res.data, dict) and not res.data.get("notfound"):
            tally.record("variant_exists", {"score": 1.0, "source": "myvariant"})
            return res.data

        if variant_id.startswith("rs"):
            ncbi = await fetch_json(f"{NCBI_ESEARCH}?db=snp&term={quote(variant_id, safe='')}&retmode=json")
            if not ncbi.ok:
                tally.record(
                    "variant_exists",
                    neutral("MyVariant and NCBI dbSNP unreachable", warning=f"dbSNP lookup failed: {ncbi.error}"),
                )
                return None
            found = _esearch_count(ncbi.data) > 0
            check = {"score": 0.8 if found else 0.0, "source": "ncbi_dbsnp" if found else "not_found"}
            if not found:
                check["error"] = f"Variant {variant_id} not found in MyVariant.info or NCBI dbSNP"
            tally.record("variant_exists", check)
            return None

        if not res.ok and res.status != 404:
            tally.record(
                "variant_exists", neutral("MyVariant unreachable", warning=f"MyVariant lookup failed: {res.error}")
            )
            return None

        tally.record(
            "variant_exists",
            {
                "score": 0.0,
                "source": "not_found",
                "error": f"Variant {variant_id} not found in MyVariant.info or NCBI",
            },
        )
        return None

    async def _consequence_match(self, result: Dict[str, Any], variant_id: str) -> Dict[str, Any]:
        claimed = first_str(result, "consequence", "variant_consequence")
        if not claimed:
            return neutral("No claimed consequence to verify")

        if variant_id.startswith("rs"):
            url = f"{ENSEMBL_API}/vep/human/id/{quote(variant_id, safe='')}?content-type=application/json"
        elif ":" in variant_id:
            url = f"{ENSEMBL_API}/vep/human/hgvs/{quote(variant_id, safe='')}?content-type=application/json"
        else:
            return neutral("No rsID or HGVS to query VEP")

        res = await fetch_json(url, headers={"Content-Type": "application/json"})
        if not res.ok or not isinstance(res.data, list) or not res.data:
            return neutral("VEP query failed or no data", warning="Could not verify consequence via Ensembl VEP")

        found: List[str] = []
        for entry in as_dict_list(res.data):
            for transcript in as_dict_list(entry.get("transcript_consequences")):
                for term in _as_list(transcript.get("consequence_terms")):
                    if term not in found:
                        found.append(term)

        match = any(squash(term) == squash(claimed) for term in found)
        return {"score": 1.0 if match else 0.2, "claimed": claimed, "found": found, "match": match}

    def _gene_match(self, result: Dict[str, Any], variant_data) -> Dict[str, Any]:
        claimed = first_str(result, "gene", "gene_symbol")
        if not claimed:
            return neutral("No claimed gene to verify")
        if variant_data is None:
            return neutral("No MyVariant data to check gene")

        genes = _as_list(extract_nested(variant_data, "dbsnp.gene.symbol")) or _as_list(
            extract_nested(variant_data, "cadd.gene.genename")
        )
        match = any(squash(g) == squash(claimed) for g in genes)
        return {"score": 1.0 if match else 0.2, "claimed": claimed, "found": genes, "match": match}

    def _clinical_significance(self, result: Dict[str, Any], variant_data) -> Dict[str, Any]:
        claimed = to_str(result.get("clinical_significance"))
        if not claimed or variant_data is None:
            return neutral("No clinical significance to verify")

        rcv = extract_nested(variant_data, "clinvar.rcv")
        if isinstance(rcv, list):
            found = [to_str(r.get("clinical_significance")) for r in rcv if isinstance(r, dict)]
        else:
            found = _as_list(extract_nested(variant_data, "clinvar.rcv.clinical_significance"))
        found = [s for s in found if s]

        match = any(squash(s) == squash(claimed) for s in found)
        score = 1.0 if match else (0.3 if found else 0.5)
        return {"score": score, "claimed": claimed, "found": found, "match": match}

    def _population_frequency(self, result: Dict[str, Any], variant_data) -> Dict[str, Any]:
        raw = first_present(result, "maf", "allele_frequency", "population_frequency")
        if raw is None or variant_data is None:
            return neutral("No MAF claimed or no data")

        claimed = to_num(raw)
        if claimed is None or not 0 <= claimed <= 1:
            return {"score": 0.0, "claimed": raw, "error": f"Allele frequency {raw} outside [0, 1]"}

        gnomad_af = to_num(extract_nested(variant_data, "gnomad_genome.af.af"))
        if gnomad_af is None or gnomad_af < 0:
            return neutral("No gnomAD frequency data available")

        tolerance = max(gnomad_af * 0.2, 0.001)
        diff = abs(claimed - gnomad_af)
        score = 1.0 if diff <= tolerance else (0.5 if diff <= tolerance * 3 else 0.2)
        return {
            "score": score,
            "claimed": claimed,
            "gnomad": gnomad_af,
            "diff": round4(diff),
            "tolerance": round4(tolerance),
        }

    # ------------------------------------------------------------------------
    # gene_expression
    # ------------------------------------------------------------------------
    async def verify_gene_expression(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        gene = first_str(result, "gene", "gene_symbol")
        if not gene:
            tally.record("gene_exists", neutral("No gene provided"))
        else:
            res = await fetch_json(
                f"{ENSEMBL_API}/lookup/symbol/homo_sapiens/{quote(gene, safe='')}?content-type=application/json"
            )
            if res.ok and isinstance(res.data, dict):
                tally.record("gene_exists", {"score": 1.0, "symbol": gene, "ensembl_id": res.data.get("id")})
            elif res.status in (400, 404):
                tally.record(
                    "gene_exists",
                    {"score": 0.0, "symbol": gene, "found": False, "error": f"Gene {gene} not found in Ensembl"},
                )
            else:
                tally.record(
                    "gene_exists", neutral("Ensembl lookup unavailable", warning=f"Ensembl lookup failed: {res.error}")
                )

        tally.record("dataset_exists", await self._dataset_exists(first_str(result, "dataset_id", "accession")))

        fold_change = to_num(first_present(result, "fold_change", "log2_fold_change"))
        if fold_change is None:
            tally.record("expression_range", neutral("No fold change provided"))
        else:
            abs_fc = abs(fold_change)
            if 0.1 <= abs_fc <= 100:
                check = {"score": 1.0}
            elif 0.01 <= abs_fc <= 1000:
                check = {"score": 0.5}
            else:
                check = {"score": 0.1, "warning": f"Fold change {fold_change} seems implausible"}
            check.update(fold_change=fold_change, plausible=check["score"] >= 0.5)
            tally.record("expression_range", check)

        tally.record("statistics_valid", _p_value_range(result))

    async def _dataset_exists(self, dataset_id: str) -> Dict[str, Any]:
        if not dataset_id:
            return neutral("No dataset ID provided")

        if dataset_id.startswith(("GSE", "GPL", "GSM")):
            res = await fetch_json(f"{NCBI_ESEARCH}?db=gds&term={quote(dataset_id, safe='')}&retmode=json")
            if not res.ok:
                return neutral("GEO search unavailable", id=dataset_id, warning=f"GEO search failed: {res.error}")
            found = _esearch_count(res.data) > 0
            check = {"score": 1.0 if found else 0.0, "id": dataset_id, "source": "GEO", "found": found}
            if not found:
                check["error"] = f"Dataset {dataset_id} not found in GEO"
            return check

        if dataset_id.startswith("E-"):
            res = await fetch_json(f"{BIOSTUDIES_API}/{quote(dataset_id, safe='')}")
            if res.ok:
                return {"score": 1.0, "id": dataset_id, "source": "BioStudies", "found": True}
            if res.status == 404:
                return {
                    "score": 0.0,
                    "id": dataset_id,
                    "source": "BioStudies",
                    "found": False,
                    "error": f"Dataset {dataset_id} not found in BioStudies",
                }
            return neutral("BioStudies unavailable", id=dataset_id, warning=f"BioStudies lookup failed: {res.error}")

        return neutral("Unknown dataset prefix", id=dataset_id, warning=f"Unknown dataset prefix for {dataset_id}")

    # ------------------------------------------------------------------------
    # gwas_association
    # ------------------------------------------------------------------------
    async def verify_gwas_association(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        rsid = first_str(result, "rsid", "variant_id")

        if not rsid:
            tally.record("variant_exists", neutral("No rsID provided"))
        else:
            res = await fetch_json(f"{MYVARIANT_API}/variant/{quote(rsid, safe='')}?fields=dbsnp.rsid")
            if res.ok and isinstance(res.data, dict) and not res.data.get("notfound"):
                tally.record("variant_exists", {"score": 1.0, "rsid": rsid, "found": True})
            elif res.ok or res.status == 404:
                tally.record(
                    "variant_exists", {"score": 0.0, "rsid": rsid, "found": False, "error": f"Variant {rsid} not found"}
                )
            else:
                tally.record(
                    "variant_exists", neutral("MyVariant unavailable", warning=f"MyVariant lookup failed: {res.error}")
                )

        if rsid.startswith("rs"):
            res = await fetch_json(
                f"{GWAS_CATALOG_API}/singleNucleotidePolymorphisms/{quote(rsid, safe='')}/associations"
            )
            if res.ok and isinstance(res.data, dict):
                associations = extract_nested(res.data, "_embedded.associations")
                count = len(associations) if isinstance(associations, list) else 0
                tally.record(
                    "gwas_catalog_match",
                    {"score": 1.0 if count > 0 else 0.3, "rsid": rsid, "associations_found": count},
                )
            else:
                tally.record(
                    "gwas_catalog_match",
                    {
                        "score": 0.3,
                        "rsid": rsid,
                        "note": "GWAS catalog query failed",
                        "warning": "GWAS Catalog API query unsuccessful",
                    },
                )
        else:
            tally.record("gwas_catalog_match", neutral("No rsID for GWAS catalog lookup"))

        tally.record("pvalue_plausible", _gwas_p_value(result))
        tally.record("effect_size_plausible", _effect_size(result))


def _p_value_range(result: Dict[str, Any]) -> Dict[str, Any]:
    raw = first_present(result, "p_value", "pvalue")
    if raw is None:
        return neutral("No p-value provided, returning neutral")
    p = to_num(raw)
    if p is not None and 0 <= p <= 1:
        return {"score": 1.0, "p_value": p, "valid": True}
    return {"score": 0.0, "p_value": raw, "valid": False, "error": f"p-value {raw} out of [0, 1] range"}


def _gwas_p_value(result: Dict[str, Any]) -> Dict[str, Any]:
    raw = first_present(result, "p_value", "pvalue")
    if raw is None:
        return neutral("No p-value provided")
    p = to_num(raw)
    if p is None or not 0 <= p <= 1:
        return {"score": 0.0, "value": raw, "error": f"p-value {raw} out of valid range"}
    if p <= 5e-8:
        score = 1.0
    elif p <= 1e-5:
        score = 0.7
    elif p <= 0.05:
        score = 0.4
    else:
        score = 0.2
    return {"score": score, "value": p, "genome_wide_significant": p <= 5e-8}


def _effect_size(result: Dict[str, Any]) -> Dict[str, Any]:
    raw = first_present(result, "odds_ratio", "or", "effect_size")
    if raw is None:
        return neutral("No effect size provided")
    odds_ratio = to_num(raw)
    if odds_ratio is None or odds_ratio <= 0:
        return {"score": 0.0, "value": raw, "error": f"Invalid odds ratio {raw}"}
    if 0.5 <= odds_ratio <= 5.0:
        return {"score": 1.0, "odds_ratio": odds_ratio}
    if 0.1 <= odds_ratio <= 20:
        return {"score": 0.5, "odds_ratio": odds_ratio}
    return {"score": 0.1, "odds_ratio": odds_ratio, "warning": f"Odds ratio {odds_ratio} seems extreme"}
