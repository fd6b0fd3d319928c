"""
Reproducibility: static checks of the claimed code repository on GitHub.

Code is never executed; the score covers repository access, the claimed
commit, dependency manifests and a recognisable entry point.
"""

from __future__ import annotations

import re
import time
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from sciverify.constants.config import (
    DEPENDENCY_MANIFESTS,
    ENTRY_POINT_FILES,
    GITHUB_API,
    GITHUB_REPO_PATTERN,
    PRIMARY_DEPENDENCY_MANIFESTS,
)
from sciverify.services.common.coercion import as_dict, as_dict_list, round4, to_str
from sciverify.services.common.http_client import fetch_json, github_headers
from sciverify.services.verification.cross_cutting.base import CrossCuttingVerifier
from sciverify.services.verification.types import CrossCuttingResult, cc_result

GITHUB_REPO_RE = re.compile(GITHUB_REPO_PATTERN)

REPRODUCIBILITY_WEIGHTS = {
    "repo_accessible": 0.25,
    "commit_exists": 0.25,
    "has_deps": 0.25,
    "has_entry_point": 0.25,
}


async def check_repo(owner: str, repo: str) -> Dict[str, Any]:
    res = await fetch_json(f"{GITHUB_API}/repos/{owner}/{repo}", headers=github_headers())
    if res.ok:
        data = as_dict(res.data)
        return {
            "score": 1.0,
            "accessible": True,
            "full_name": data.get("full_name"),
            "default_branch": data.get("default_branch"),
        }
    if res.status == 404:
        return {"score": 0.0, "accessible": False, "error": res.error}
    return {"score": 0.5, "accessible": None, "error": res.error}


async def check_commit(owner: str, repo: str, commit: str) -> Dict[str, Any]:
    url = f"{GITHUB_API}/repos/{owner}/{repo}/commits/{quote(commit, safe='')}"
    res = await fetch_json(url, headers=github_headers())
    if res.ok:
        data = as_dict(res.data)
        return {
            "score": 1.0,
            "found": True,
            "sha": to_str(data.get("sha"))[:12],
            "message": as_dict(data.get("commit")).get("message"),
        }
    if res.status in (404, 422):
        return {"score": 0.0, "found": False, "error": res.error}
    return {"score": 0.5, "found": None, "error": res.error}


async def root_tree_paths(owner: str, repo: str, ref: str) -> Optional[List[str]]:
    """Top-level paths at ``ref``; [] when the tree is missing, None when GitHub is unreachable."""
    url = f"{GITHUB_API}/repos/{owner}/{repo}/git/trees/{quote(ref, safe='')}"
    res = await fetch_json(url, headers=github_headers())
    if res.ok:
        return [to_str(entry.get("path")) for entry in as_dict_list(as_dict(res.data).get("tree"))]
    if res.status in (404, 409, 422):
        return []
    return None


def dependency_check(paths: List[str]) -> Dict[str, Any]:
    found = [name for name in DEPENDENCY_MANIFESTS if name in paths]
    if not found:
        return {"score": 0.3, "found": [], "note": "No dependency files found"}
    return {"score": 1.0 if PRIMARY_DEPENDENCY_MANIFESTS.intersection(found) else 0.7, "found": found}


def entry_point_check(paths: List[str]) -> Dict[str, Any]:
    found = [name for name in ENTRY_POINT_FILES if name in paths]
    if not found:
        return {"score": 0.3, "found": [], "note": f"No entry point found ({', '.join(ENTRY_POINT_FILES)})"}
    return {"score": 1.0, "found": found}


class ReproducibilityVerifier(CrossCuttingVerifier):
    name = "reproducibility"
    weight = 0.15

    def is_applicable(self, claim_result: Mapping[str, Any]) -> bool:
        return bool(claim_result.get("code_repo") and claim_result.get("code_commit"))

    async def verify(self, claim_result: Dict[str, Any], metadata: Mapping[str, Any]) -> CrossCuttingResult:
        start = time.perf_counter()
        code_repo = to_str(claim_result.get("code_repo"))
        commit = to_str(claim_result.get("code_commit"))
        details: Dict[str, Any] = {"repo": code_repo, "commit": commit}

        match = GITHUB_REPO_RE.search(code_repo)
        if not match:
            details["error"] = "Could not parse GitHub repo URL"
            return cc_result(
                self.name,
                self.weight,
                0.3,
                details,
                warnings=["Only GitHub repos supported for API checks"],
                compute_time_seconds=time.perf_counter() - start,
            )

        owner, repo = match.group(1), match.group(2)
        repo_check = await check_repo(owner, repo)
        details["repo_check"] = repo_check

        if repo_check["accessible"] is False:
            return cc_result(
                self.name,
                self.weight,
                0.0,
                details,
                errors=["Repository not accessible"],
                compute_time_seconds=time.perf_counter() - start,
            )
        if repo_check["accessible"] is None:
            return cc_result(
                self.name,
                self.weight,
                0.5,
                details,
                warnings=[f"GitHub unavailable, reproducibility not assessed: {repo_check['error']}"],
                compute_time_seconds=time.perf_counter() - start,
            )

        warnings = ["Code execution skipped; score based on static repository checks only"]
        errors: List[str] = []

        commit_check = await check_commit(owner, repo, commit)
        if commit_check["found"] is False:
            errors.append(f"Commit {commit} not found in {owner}/{repo}")

        paths = await root_tree_paths(owner, repo, commit)
        if paths is None:
            deps_check = {"score": 0.5, "note": "GitHub tree unavailable"}
            entry_check = {"score": 0.5, "note": "GitHub tree unavailable"}
            warnings.append("Could not list repository files via GitHub")
        else:
            deps_check = dependency_check(paths)
            entry_check = entry_point_check(paths)

        details.update(commit_check=commit_check, deps_check=deps_check, entry_point_check=entry_check)
        scores = {
            "repo_accessible": repo_check["score"],
            "commit_exists": commit_check["score"],
            "has_deps": deps_check["score"],
            "has_entry_point": entry_check["score"],
        }
        details["component_scores"] = scores
        score = sum(weight * scores[name] for name, weight in REPRODUCIBILITY_WEIGHTS.items())

        return cc_result(
            self.name,
            self.weight,
            round4(score),
            details,
            warnings=warnings,
            errors=errors,
            compute_time_seconds=time.perf_counter() - start,
        )
