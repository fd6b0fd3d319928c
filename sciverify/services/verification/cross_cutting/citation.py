"""
Citation and reference verification.

Each citation is scored on four components:
    doi_resolution  0.30  CrossRef resolves the DOI; retractions and corrections lower it
    metadata_match  0.30  title similarity against OpenAlex, then Semantic Scholar
    claim_support   0.25  claim text vs. abstract word overlap
    freshness       0.15  publication age against a per-domain threshold
"""

from __future__ import annotations

import asyncio
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from sciverify.constants.config import (
    CITATION_KEYS,
    CORRECTION_UPDATE_TYPES,
    CROSSREF_API,
    DOI_PATTERN,
    FAST_MOVING_DOMAINS,
    FRESHNESS_YEARS_FAST,
    FRESHNESS_YEARS_SLOW,
    MAX_CITATIONS,
    OPENALEX_API,
    RETRACTION_UPDATE_TYPES,
    SEMANTIC_SCHOLAR_API,
)
from sciverify.core.logger import get_logger
from sciverify.services.common.coercion import as_dict, as_dict_list, round4, to_str
from sciverify.services.common.http_client import fetch_json
from sciverify.services.common.text_similarity import jaccard_similarity
from sciverify.services.verification.cross_cutting.base import CrossCuttingVerifier
from sciverify.services.verification.types import CrossCuttingResult, cc_result

logger = get_logger(__name__)

DOI_RE = re.compile(DOI_PATTERN)
TITLE_QUERY_LIMIT = 200

CITATION_WEIGHTS = {
    "doi_resolution": 0.30,
    "metadata_match": 0.30,
    "claim_support": 0.25,
    "freshness": 0.15,
}


@dataclass
class Citation:
    title: str = ""
    doi: str = ""
    authors: List[Any] = field(default_factory=list)
    year: Optional[int] = None
    claim_text: str = ""
    url: str = ""
    abstract: str = ""

    @classmethod
    def from_raw(cls, raw: Any) -> "Citation":
        if isinstance(raw, dict):
            year = raw.get("year")
            return cls(
                title=to_str(raw.get("title")),
                doi=to_str(raw.get("doi")),
                authors=raw.get("authors") if isinstance(raw.get("authors"), list) else [],
                year=year if isinstance(year, int) and not isinstance(year, bool) else None,
                claim_text=to_str(raw.get("claim_text")) or to_str(raw.get("relevance")),
                url=to_str(raw.get("url")),
                abstract=to_str(raw.get("abstract")),
            )
        return cls(title=to_str(raw))


def extract_citations(claim_result: Mapping[str, Any]) -> List[Citation]:
    for key in CITATION_KEYS:
        raw = claim_result.get(key)
        if isinstance(raw, list) and raw:
            return [Citation.from_raw(item) for item in raw]
    return []


def doi_from_url(url: str) -> str:
    match = DOI_RE.search(url)
    return match.group(0).rstrip(".,;)") if match else ""


def retraction_status(message: Mapping[str, Any]) -> Dict[str, Any]:
    """Retraction and correction notices from CrossRef's ``update-to`` list."""
    retracted = False
    corrected = False
    notices = []
    for update in as_dict_list(message.get("update-to")):
        kind = to_str(update.get("type")).lower()
        label = to_str(update.get("label")) or kind
        if any(word in kind for word in RETRACTION_UPDATE_TYPES):
            retracted = True
            notices.append(label)
        elif any(word in kind for word in CORRECTION_UPDATE_TYPES):
            corrected = True
            notices.append(label)
    return {"retracted": retracted, "has_correction": corrected, "notices": notices}


def abstract_from_inverted_index(index: Any) -> str:
    """OpenAlex ships abstracts as {word: [positions]}; rebuild the text."""
    if not isinstance(index, dict) or not index:
        return ""
    positions: Dict[int, str] = {}
    for word, occurrences in index.items():
        for position in occurrences if isinstance(occurrences, list) else []:
            if isinstance(position, int):
                positions[position] = word
    return " ".join(positions[p] for p in sorted(positions))


def freshness_score(year: Optional[int], domain: str, current_year: Optional[int] = None) -> float:
    if year is None:
        return 0.5
    age = (current_year or datetime.now(timezone.utc).year) - year
    if age < 0:
        return 0.8

    threshold = FRESHNESS_YEARS_FAST if domain in FAST_MOVING_DOMAINS else FRESHNESS_YEARS_SLOW
    if age <= threshold:
        return 1.0
    if age <= threshold * 2:
        return round4(max(0.3, 1.0 - (age - threshold) / threshold))
    return 0.3


def claim_support_score(citation: Citation, fetched_abstract: str) -> float:
    abstract = fetched_abstract or citation.abstract
    if not citation.claim_text or not abstract:
        return 0.5
    return round4(min(1.0, jaccard_similarity(citation.claim_text, abstract) * 2.0))


async def resolve_doi(doi: str) -> Dict[str, Any]:
    res = await fetch_json(f"{CROSSREF_API}/{quote(doi, safe='')}")
    message = as_dict(res.data).get("message") if res.ok else None

    if not isinstance(message, dict):
        if res.status == 404:
            return {"score": 0.0, "resolved": False, "error": f"DOI {doi} does not resolve"}
        return {
            "score": 0.5,
            "resolved": False,
            "note": "CrossRef unavailable",
            "warning": f"CrossRef lookup failed for {doi}: {res.error}",
        }

    status = retraction_status(message)
    titles = message.get("title")
    check: Dict[str, Any] = {
        "score": 1.0,
        "resolved": True,
        "doi": doi,
        "title": titles[0] if isinstance(titles, list) and titles else "",
    }
    if status["retracted"]:
        check.update(score=0.1, retraction_status=status, warning=f"{doi} has been retracted")
    elif status["has_correction"]:
        check.update(score=0.7, retraction_status=status, warning=f"{doi} has a published correction")
    return check


def _title_match(title: str, source: str, matched_title: str, abstract: str, year: Any) -> Dict[str, Any]:
    similarity = jaccard_similarity(title.lower(), matched_title.lower())
    return {
        "score": round4(min(1.0, similarity * 1.25)),
        "source": source,
        "matched_title": matched_title,
        "similarity": round4(similarity),
        "abstract": abstract,
        "year": year,
    }


async def query_openalex(title: str) -> Dict[str, Any]:
    query = quote(title[:TITLE_QUERY_LIMIT], safe="")
    res = await fetch_json(f"{OPENALEX_API}?filter=title.search:{query}&per_page=1")
    results = as_dict_list(as_dict(res.data).get("results")) if res.ok else []
    if not results:
        return {"score": 0.0, "source": "openalex", "error": res.error or "No results", "unavailable": not res.ok}

    top = results[0]
    abstract = abstract_from_inverted_index(top.get("abstract_inverted_index")) or to_str(top.get("abstract"))
    return _title_match(title, "openalex", to_str(top.get("title")), abstract, top.get("publication_year"))


async def query_semantic_scholar(title: str) -> Dict[str, Any]:
    query = quote(title[:TITLE_QUERY_LIMIT], safe="")
    res = await fetch_json(
        f"{SEMANTIC_SCHOLAR_API}/paper/search?query={query}&limit=1&fields=title,abstract,year,authors"
    )
    papers = as_dict_list(as_dict(res.data).get("data")) if res.ok else []
    if not papers:
        error = res.error or "No results"
        return {"score": 0.0, "source": "semantic_scholar", "error": error, "unavailable": not res.ok}

    top = papers[0]
    matched_title = to_str(top.get("title"))
    return _title_match(title, "semantic_scholar", matched_title, to_str(top.get("abstract")), top.get("year"))


async def metadata_match(citation: Citation) -> Dict[str, Any]:
    """OpenAlex first; Semantic Scholar only when OpenAlex is not convincing."""
    if not citation.title:
        return {"score": 0.5, "note": "No title to match"}

    openalex = await query_openalex(citation.title)
    if openalex["score"] >= 0.7:
        return openalex
    semantic = await query_semantic_scholar(citation.title)
    if openalex.get("unavailable") and semantic.get("unavailable"):
        return {
            "score": 0.5,
            "note": "Title lookup services unavailable",
            "warning": f"OpenAlex and Semantic Scholar lookups failed: {openalex['error']}; {semantic['error']}",
        }
    return openalex if openalex["score"] >= semantic["score"] else semantic


async def check_citation(citation: Citation, domain: str) -> Dict[str, Any]:
    details: Dict[str, Any] = {"title": citation.title}
    scores: Dict[str, float] = {}
    warnings: List[str] = []

    doi = citation.doi or doi_from_url(citation.url)
    if doi:
        doi_check = await resolve_doi(doi)
    else:
        doi_check = {"score": 0.5, "note": "No DOI provided"}
    scores["doi_resolution"] = doi_check["score"]
    details["doi"] = doi_check
    if doi_check.get("warning"):
        warnings.append(doi_check["warning"])

    meta = await metadata_match(citation)
    scores["metadata_match"] = meta["score"]
    details["metadata"] = {k: v for k, v in meta.items() if k != "abstract"}
    if meta.get("warning"):
        warnings.append(meta["warning"])

    scores["claim_support"] = claim_support_score(citation, to_str(meta.get("abstract")))
    details["claim_support_score"] = scores["claim_support"]

    scores["freshness"] = freshness_score(citation.year, domain)
    details["freshness_score"] = scores["freshness"]

    details["component_scores"] = scores
    details["score"] = round4(sum(weight * scores[name] for name, weight in CITATION_WEIGHTS.items()))
    details["warnings"] = warnings
    return details


class CitationVerifier(CrossCuttingVerifier):
    name = "citation_reference"
    weight = 0.15

    def is_applicable(self, claim_result: Mapping[str, Any]) -> bool:
        for key in CITATION_KEYS:
            value = claim_result.get(key)
            if value and (not isinstance(value, list) or len(value) > 0):
                return True
        return False

    async def verify(self, claim_result: Dict[str, Any], metadata: Mapping[str, Any]) -> CrossCuttingResult:
        start = time.perf_counter()
        domain = to_str(metadata.get("domain")) or "general"

        citations = extract_citations(claim_result)[:MAX_CITATIONS]
        if not citations:
            return cc_result(
                self.name,
                self.weight,
                0.0,
                {},
                errors=["No parseable citations found"],
                compute_time_seconds=time.perf_counter() - start,
            )

        outcomes = await asyncio.gather(*(check_citation(c, domain) for c in citations), return_exceptions=True)

        results: List[Dict[str, Any]] = []
        warnings: List[str] = []
        total = 0.0
        for i, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"[CitationVerifier] Citation {i} check failed: {outcome}")
                results.append({"citation": citations[i].title or f"citation_{i}", "error": str(outcome), "score": 0.0})
                continue
            warnings.extend(outcome.pop("warnings"))
            results.append(outcome)
            total += outcome["score"]

        return cc_result(
            self.name,
            self.weight,
            round4(total / len(citations)),
            {"citations_checked": len(citations), "citation_results": results},
            warnings=warnings,
            compute_time_seconds=time.perf_counter() - start,
        )
