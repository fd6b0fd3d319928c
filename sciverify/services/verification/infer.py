"""
Domain and claim-type inference from result field patterns.

Pure functions with no I/O. Used when a caller omits ``domain`` or
``claim_type``; signature lists run from most specific to most general.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

# ----------------------------------------------------------------------------
# Domain signatures (first entry wins ties)
# ----------------------------------------------------------------------------
DOMAIN_SIGNATURES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("immunoinformatics", ("epitope", "hla_allele", "mhc_class", "ic50", "binding_affinity", "allele")),
    ("metabolomics", ("hmdb_id", "inchikey", "precursor_mz", "adduct", "peaks", "fragments")),
    ("genomics", ("variant_id", "rsid", "hgvs", "consequence", "allele_frequency", "clinical_significance")),
    ("epidemiology", ("contingency_table", "odds_ratio", "hazard_ratio", "survival_times", "incidence")),
    ("systems_biology", ("pathway_id", "kegg_pathway", "stoichiometry_matrix", "flux", "edges", "interactions")),
    ("computational_biology", ("pdb_id", "plddt", "ptm", "dot_bracket", "rmsd", "tm_score")),
    ("bioinformatics", ("sequence", "fasta", "alignment_score", "e_value", "identity", "query_coverage")),
    (
        "physics",
        ("conserved_quantities", "time_series", "convergence_errors", "boundary_conditions", "dimensionless_groups"),
    ),
    ("ml_ai", ("model_id", "benchmark", "metrics", "layers", "param_count")),
)

# ----------------------------------------------------------------------------
# Claim-type signatures, per domain (specific -> general)
# ----------------------------------------------------------------------------
CLAIM_TYPE_SIGNATURES: Dict[str, Tuple[Tuple[str, Tuple[str, ...]], ...]] = {
    "genomics": (
        ("variant_annotation", ("variant_id", "rsid", "hgvs", "consequence")),
        ("gene_expression", ("fold_change", "log2_fold_change", "dataset_id", "accession")),
        ("gwas_association", ("odds_ratio", "gwas", "effect_size")),
    ),
    "bioinformatics": (
        ("alignment", ("alignment_score", "query", "subject", "gap_percentage")),
        ("pipeline_validation", ("tools", "pipeline_steps", "software", "steps")),
        ("sequence_analysis", ("sequence", "fasta", "sequence_id", "e_value")),
    ),
    "systems_biology": (
        ("flux_balance", ("stoichiometry_matrix", "flux", "flux_values", "bounds")),
        ("network_topology", ("edges", "interactions", "hubs", "proteins", "nodes")),
        ("pathway_enrichment", ("pathway_id", "genes", "gene_set", "fdr")),
    ),
    "immunoinformatics": (
        ("mhc_binding", ("mhc_class", "ic50", "binding_affinity", "classification")),
        ("bcell_epitope", ("bcell", "bepipred", "surface_accessibility")),
        ("epitope_prediction", ("epitope", "peptide", "allele", "hla_allele")),
    ),
    "metabolomics": (
        ("spectral_match", ("precursor_mz", "peaks", "fragments", "peak_list")),
        ("pathway_mapping", ("pathway_id", "kegg_pathway", "compound_id")),
        ("compound_identification", ("hmdb_id", "inchikey", "compound_name")),
    ),
    "computational_biology": (
        ("binder_design", ("target_protein", "target_uniprot", "binder_sequence")),
        ("rna_structure", ("dot_bracket", "mfe", "rfam_id", "rfam_family", "rna_sequence")),
        ("structure_comparison", ("pdb_id_1", "pdb_id_2", "rmsd", "tm_score", "alignment_length")),
        ("protein_design", ("designed_sequence",)),
        ("structure_prediction", ("plddt", "ptm", "method")),
    ),
    "epidemiology": (
        ("odds_ratio", ("contingency_table", "odds_ratio")),
        ("survival_analysis", ("survival_times", "events", "hazard_ratio")),
        ("incidence_rate", ("indicator_code", "incidence", "rate", "denominator", "cases")),
    ),
    "physics": (
        ("numerical_simulation", ("conserved_quantities", "time_series", "convergence_errors", "boundary_conditions")),
        ("dimensional_analysis", ("dimensionless_groups",)),
        ("analytical_derivation", ("equations", "derivation", "variables")),
    ),
    "ml_ai": (
        ("architecture", ("layers", "code", "architecture")),
        ("ml_experiment", ("code_repo", "code_commit", "hyperparameters")),
        ("benchmark_result", ("model_id", "benchmark", "leaderboard")),
    ),
}


def _count_matches(result: Mapping[str, Any], fields: Sequence[str]) -> int:
    return sum(1 for f in fields if result.get(f) is not None)


def _best_match(
    result: Mapping[str, Any],
    signatures: Sequence[Tuple[str, Sequence[str]]],
    min_matches: int,
) -> Optional[str]:
    best: Optional[str] = None
    best_count = 0
    for name, fields in signatures:
        count = _count_matches(result, fields)
        if count >= min_matches and count > best_count:
            best = name
            best_count = count
    return best


def infer_domain(result: Mapping[str, Any]) -> Optional[str]:
    """
    Infer the scientific domain from result field patterns.

    A domain needs at least two non-null signature fields and must strictly
    beat the current best, so ties keep the earlier (more specific) domain.
    """
    if not isinstance(result, Mapping):
        return None
    return _best_match(result, DOMAIN_SIGNATURES, min_matches=2)


def infer_claim_type(domain: str, result: Mapping[str, Any]) -> Optional[str]:
    """Infer the claim type within a known domain; one matching field suffices."""
    signatures = CLAIM_TYPE_SIGNATURES.get(domain)
    if not signatures or not isinstance(result, Mapping):
        return None
    return _best_match(result, signatures, min_matches=1)
