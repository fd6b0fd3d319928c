"""
Engine configuration constants.
Centralized external endpoints, reference vocabularies and scoring bands.
"""

# ============================================================================
# EXTERNAL DATA SOURCES
# ============================================================================

MYVARIANT_API = "https://myvariant.info/v1"
ENSEMBL_API = "https://rest.ensembl.org"
NCBI_EUTILS = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
NCBI_ESEARCH = f"{NCBI_EUTILS}/esearch.fcgi"
GWAS_CATALOG_API = "https://www.ebi.ac.uk/gwas/rest/api"
BIOSTUDIES_API = "https://www.ebi.ac.uk/biostudies/api/v1/studies"
UNIPROT_API = "https://rest.uniprot.org/uniprotkb"
RCSB_ENTRY_API = "https://data.rcsb.org/rest/v1/core/entry"
RFAM_API = "https://rfam.org/family"
WHO_GHO_API = "https://ghoapi.azureedge.net/api"
IEDB_TOOLS_API = "http://tools-cluster-interface.iedb.org/tools_api"
HMDB_BASE = "https://hmdb.ca/metabolites"
PUBCHEM_API = "https://pubchem.ncbi.nlm.nih.gov/rest/pug"
KEGG_API = "https://rest.kegg.jp"
MASSBANK_API = "https://massbank.eu/MassBank/rest"
REACTOME_API = "https://reactome.org/ContentService"
STRING_API = "https://string-db.org/api/json"
HUGGINGFACE_API = "https://huggingface.co/api"
GITHUB_API = "https://api.github.com"
CROSSREF_API = "https://api.crossref.org/works"
OPENALEX_API = "https://api.openalex.org/works"
SEMANTIC_SCHOLAR_API = "https://api.semanticscholar.org/graph/v1"

# ============================================================================
# BIOINFORMATICS REFERENCE VOCABULARIES
# ============================================================================

KNOWN_ANALYSIS_TOOLS = frozenset(
    {
        "blast", "blastp", "blastn", "blastx", "tblastn", "tblastx",
        "hmmer", "hmmscan", "hmmsearch", "jackhmmer", "phmmer",
        "mafft", "clustalw", "clustalo", "muscle", "t-coffee", "tcoffee",
        "diamond", "cd-hit", "cdhit", "mmseqs", "mmseqs2",
        "interproscan", "pfam", "prosite", "signalp", "tmhmm",
        "phyre2", "i-tasser", "alphafold", "rosettafold",
    }
)

KNOWN_ALIGNMENT_TOOLS = frozenset(
    {
        "mafft", "clustalw", "clustalo", "muscle", "t-coffee", "tcoffee",
        "blast", "blastp", "blastn", "blastx", "tblastn", "tblastx",
        "diamond", "minimap2", "bowtie2", "bwa", "hisat2", "star",
        "kalign", "prank", "probcons", "dialign",
        "hmmer", "hmmscan", "hmmsearch",
        "needle", "water", "stretcher", "emboss",
    }
)

KNOWN_PIPELINE_TOOLS = frozenset(
    {
        "bwa", "bwa-mem2", "bowtie2", "hisat2", "star", "minimap2",
        "samtools", "bcftools", "htslib",
        "gatk", "picard", "freebayes", "deepvariant", "strelka2", "mutect2",
        "fastqc", "multiqc", "fastp", "trim_galore", "trimmomatic", "cutadapt",
        "salmon", "kallisto", "rsem", "htseq", "featurecounts", "stringtie", "cufflinks",
        "deseq2", "edger", "limma", "sleuth",
        "spades", "megahit", "velvet", "abyss", "flye", "canu", "hifiasm",
        "prokka", "bakta", "roary", "snippy",
        "snpeff", "annovar", "vep", "funcotator",
        "bedtools", "deeptools", "macs2", "homer",
        "nextflow", "snakemake", "cwl", "wdl", "cromwell",
    }
)

KNOWN_SEQUENCE_DATABASES = frozenset(
    {
        "genbank", "refseq", "nr", "nt", "swissprot", "uniprot", "uniprotkb",
        "trembl", "pdb", "embl", "ddbj", "ensembl", "ncbi",
        "pfam", "interpro", "prosite", "tigrfam", "hamap",
        "kegg", "go", "reactome", "string",
        "silva", "greengenes", "rdp", "unite",
        "arrayexpress", "geo", "sra", "ena",
        "dbsnp", "clinvar", "cosmic", "gnomad", "exac",
        "flybase", "wormbase", "tair", "sgd", "mgi", "rgd", "zfin",
    }
)

PIPELINE_QC_KEYWORDS = ("fastqc", "multiqc", "quality", "trim", "fastp", "cutadapt")
PIPELINE_ANALYSIS_KEYWORDS = ("variant", "call", "deseq", "edger", "assembly", "annotation")

PIPELINE_INPUT_FORMATS = (
    "fastq", "fasta", "bam", "sam", "vcf", "bed", "gff", "gtf",
    "csv", "tsv", "sra", "fq", "fa", "cram",
)
PIPELINE_OUTPUT_FORMATS = (
    "vcf", "bam", "sam", "bed", "gff", "gtf", "csv", "tsv", "txt",
    "fasta", "fastq", "html", "pdf", "png", "svg",
    "counts", "matrix", "table", "report", "annotation", "assembly",
    "cram", "bigwig", "bw", "bedgraph",
)

# ============================================================================
# STRUCTURAL BIOLOGY
# ============================================================================

KNOWN_STRUCTURE_PREDICTORS = ("alphafold", "colabfold", "esmfold", "rosettafold", "omegafold", "openfold")

CANONICAL_RNA_PAIRS = frozenset({"AU", "UA", "GC", "CG", "GU", "UG"})

# ============================================================================
# IMMUNOINFORMATICS
# ============================================================================

# Kyte-Doolittle hydropathy index per residue
KYTE_DOOLITTLE = {
    "A": 1.8, "R": -4.5, "N": -3.5, "D": -3.5, "C": 2.5,
    "E": -3.5, "Q": -3.5, "G": -0.4, "H": -3.2, "I": 4.5,
    "L": 3.8, "K": -3.9, "M": 1.9, "F": 2.8, "P": -1.6,
    "S": -0.8, "T": -0.7, "W": -0.9, "Y": -1.3, "V": 4.2,
}

# IC50 (nM) upper bounds for binder classes
IC50_STRONG_BINDER_NM = 50
IC50_WEAK_BINDER_NM = 500

ORTHOLOG_DATABASES = frozenset({"OrthoDB", "OMA", "InParanoid"})

# ============================================================================
# METABOLOMICS
# ============================================================================

# Mass shift (Da) from neutral monoisotopic mass to observed m/z
ADDUCT_SHIFTS = {
    "[M+H]+": 1.00728,
    "[M-H]-": -1.00728,
    "[M+Na]+": 22.9892,
    "[M+K]+": 38.9632,
    "[M+NH4]+": 18.0344,
    "[M-H2O+H]+": -17.0027,
}
DEFAULT_ADDUCT = "[M+H]+"

# ============================================================================
# SYSTEMS BIOLOGY
# ============================================================================

STRING_SPECIES_HUMAN = 9606
STRING_REQUIRED_SCORE = 400
STRING_MAX_IDENTIFIERS = 20
ENSEMBL_GENE_SAMPLE = 10
FLUX_TOLERANCE = 1e-6

# ============================================================================
# ML / AI
# ============================================================================

GITHUB_REPO_PATTERN = r"github\.com[/:]([^/]+)/([^/.]+)"
BOUNDED_METRIC_PATTERN = r"accuracy|f1|precision|recall|bleu"
PERPLEXITY_PATTERN = r"perplexity"
PARAM_COUNT_TOLERANCE = 0.05
MAX_PLAUSIBLE_PARAMS = 1e13

# ============================================================================
# CROSS-CUTTING: CITATIONS
# ============================================================================

CITATION_KEYS = ("citations", "references", "papers", "bibliography")
MAX_CITATIONS = 10
FAST_MOVING_DOMAINS = frozenset({"ml_ai", "bioinformatics", "computational_biology"})
FRESHNESS_YEARS_FAST = 5
FRESHNESS_YEARS_SLOW = 15
DOI_PATTERN = r"10\.\d{4,}/[^\s]+"
RETRACTION_UPDATE_TYPES = ("retraction", "withdrawal")
CORRECTION_UPDATE_TYPES = ("correction", "erratum")

# ============================================================================
# CROSS-CUTTING: STATISTICAL FORENSICS
# ============================================================================

FORENSICS_KEYS = ("statistical_claims", "means", "p_values", "metrics", "results_summary")
SPRITE_SEED = 42
SPRITE_MAX_ITERATIONS = 5000
SPRITE_MAX_N = 200
SPRITE_DEFAULT_SCALE = (1, 7)
SPRITE_MAX_SCALE_RANGE = 1000
GRIM_MAX_N = 1_000_000
BENFORD_MIN_NUMBERS = 10
PCURVE_MIN_SIGNIFICANT = 3
KS_CRITICAL_COEFFICIENT = 1.36  # alpha = 0.05

# ============================================================================
# CROSS-CUTTING: DATA INTEGRITY
# ============================================================================

DATA_INTEGRITY_KEYS = ("data", "dataset", "raw_data", "results_summary", "output_checksums")
DATA_CONTAINER_KEYS = ("data", "dataset", "raw_data")
OUTLIER_Z_THRESHOLD = 3.0
OUTLIER_MIN_COLUMN_VALUES = 5

# ============================================================================
# CROSS-CUTTING: REPRODUCIBILITY
# ============================================================================

DEPENDENCY_MANIFESTS = ("requirements.txt", "pyproject.toml", "setup.py", "package.json")
PRIMARY_DEPENDENCY_MANIFESTS = frozenset({"requirements.txt", "pyproject.toml", "package.json"})
ENTRY_POINT_FILES = ("reproduce.py", "run.sh", "main.py", "Makefile")
