"""
Common utilities shared across domain adapters and cross-cutting verifiers.

Modules:
    - http_client: Timeout-bounded JSON/text fetches that never raise
    - coercion: Total accessors for untyped claim records
    - statistics: Gamma, chi-squared survival and descriptive statistics
    - text_similarity: Word-level Jaccard similarity
"""
