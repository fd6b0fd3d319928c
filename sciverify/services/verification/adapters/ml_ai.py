"""
ML/AI domain adapter.

Benchmark claims are checked against HuggingFace Hub metadata, experiments
against GitHub, and architecture claims by parsing the submitted code.
"""

from __future__ import annotations

import ast
import re
from typing import Any, Dict, Optional
from urllib.parse import quote

from sciverify.constants.config import (
    BOUNDED_METRIC_PATTERN,
    GITHUB_API,
    GITHUB_REPO_PATTERN,
    HUGGINGFACE_API,
    MAX_PLAUSIBLE_PARAMS,
    PARAM_COUNT_TOLERANCE,
    PERPLEXITY_PATTERN,
)
from sciverify.services.common.coercion import as_dict, extract_nested, first_str, to_num, to_str
from sciverify.services.common.http_client import FetchResult, fetch_json, github_headers
from sciverify.services.verification.adapters.base import ComponentTally, DomainAdapter, neutral

GITHUB_REPO_RE = re.compile(GITHUB_REPO_PATTERN)
BOUNDED_METRIC_RE = re.compile(BOUNDED_METRIC_PATTERN, re.IGNORECASE)
PERPLEXITY_RE = re.compile(PERPLEXITY_PATTERN, re.IGNORECASE)
DEFINITION_NODES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef, ast.Import, ast.ImportFrom)


def check_metric_plausibility(metrics: Any) -> Dict[str, Any]:
    """Bounded metrics must lie in [0, 100]; perplexity must be >= 1."""
    if not isinstance(metrics, dict) or not metrics:
        return neutral("No metrics provided")

    issues = []
    for name, raw in metrics.items():
        value = to_num(raw)
        if value is None:
            continue
        if BOUNDED_METRIC_RE.search(name) and not 0 <= value <= 100:
            issues.append(f"{name}={value:g} out of plausible range")
        if PERPLEXITY_RE.search(name) and value < 1:
            issues.append(f"{name}={value:g} should be >= 1")

    check: Dict[str, Any] = {"score": 1.0 if not issues else max(0.2, 1.0 - len(issues) * 0.3), "issues": issues}
    if issues:
        check["error"] = "; ".join(issues)
    return check


def _model_missing(res: FetchResult) -> bool:
    return res.status in (401, 404)


class MlAiAdapter(DomainAdapter):
    domain = "ml_ai"
    default_claim_type = "benchmark_result"
    component_weights = {
        "benchmark_result": {
            "model_exists": 0.15,
            "leaderboard": 0.40,
            "model_card": 0.25,
            "plausibility": 0.10,
            "metadata": 0.10,
        },
        "ml_experiment": {
            "repo_exists": 0.30,
            "commit_exists": 0.20,
            "reproducibility_files": 0.25,
            "metric_plausibility": 0.25,
        },
        "architecture": {
            "code_parseable": 0.40,
            "layers_declared": 0.30,
            "param_plausible": 0.30,
        },
    }

    # ------------------------------------------------------------------------
    # benchmark_result
    # ------------------------------------------------------------------------
    async def verify_benchmark_result(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        model_id = first_str(result, "model_id")
        claimed_params = to_num(result.get("param_count"))

        tally.record(
            "leaderboard",
            neutral("Leaderboard parquet lookup not available; neutral score"),
        )
        tally.warn("Leaderboard check degraded: no parquet reader available")
        tally.record("plausibility", check_metric_plausibility(result.get("metrics")))

        if not model_id:
            tally.record("model_exists", neutral("No model_id provided"))
            tally.record("model_card", neutral("No model_id provided"))
            tally.record("metadata", neutral("No model_id provided"))
            return

        # HF model ids are "org/name"; the slash stays a path separator
        res = await fetch_json(f"{HUGGINGFACE_API}/models/{quote(model_id, safe='/')}")
        model = as_dict(res.data) if res.ok else {}

        if res.ok:
            tally.record(
                "model_exists",
                {
                    "score": 1.0,
                    "found": True,
                    "model_id": model_id,
                    "pipeline_tag": model.get("pipeline_tag"),
                    "downloads": model.get("downloads"),
                },
            )
        elif _model_missing(res):
            tally.record(
                "model_exists",
                {"score": 0.0, "found": False, "error": f"Model {model_id} not found on HuggingFace Hub"},
            )
        else:
            tally.record(
                "model_exists",
                neutral("HuggingFace Hub unavailable", warning=f"HuggingFace Hub lookup failed: {res.error}"),
            )

        tally.record("model_card", self._model_card_check(res, model))
        tally.record("metadata", self._param_count_check(res, model, claimed_params))

    @staticmethod
    def _model_card_check(res: FetchResult, model: Dict[str, Any]) -> Dict[str, Any]:
        if not res.ok:
            if _model_missing(res):
                return {"score": 0.3, "note": "Could not fetch model info"}
            return neutral("Could not fetch model info")

        card = model.get("cardData")
        if not card:
            return {"score": 0.3, "note": "No model card found", "warning": "Model has no model card"}
        card = as_dict(card)
        evals = card.get("eval_results") or card.get("model-index") or card.get("model_index")
        if not evals:
            return {"score": 0.5, "has_card": True, "has_eval_results": False, "note": "Model card has no eval results"}
        return {"score": 0.8, "has_card": True, "has_eval_results": True}

    @staticmethod
    def _param_count_check(res: FetchResult, model: Dict[str, Any], claimed: Optional[float]) -> Dict[str, Any]:
        if claimed is None:
            return neutral("No param_count claimed")
        if not res.ok:
            return neutral("Could not fetch model metadata")

        total = to_num(extract_nested(model, "safetensors.total"))
        if total is None:
            return neutral("No param count in HF metadata")

        match = abs(claimed - total) <= total * PARAM_COUNT_TOLERANCE
        check: Dict[str, Any] = {"score": 1.0 if match else 0.3, "match": match, "claimed": claimed, "hf_total": total}
        if not match:
            check["warning"] = f"Claimed {claimed:g} parameters but HuggingFace reports {total:g}"
        return check

    # ------------------------------------------------------------------------
    # ml_experiment
    # ------------------------------------------------------------------------
    async def verify_ml_experiment(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        repo_url = first_str(result, "code_repo", "repo_url")
        commit = first_str(result, "code_commit", "commit")
        match = GITHUB_REPO_RE.search(repo_url) if repo_url else None

        if match:
            owner, repo = match.group(1), match.group(2)
            repo_api = f"{GITHUB_API}/repos/{owner}/{repo}"
            res = await fetch_json(repo_api, headers=github_headers())
            if res.ok:
                tally.record("repo_exists", {"score": 1.0, "found": True, "repo": f"{owner}/{repo}"})
            elif res.status == 404:
                message = f"GitHub repository {owner}/{repo} not found"
                tally.record("repo_exists", {"score": 0.0, "found": False, "error": message})
            else:
                tally.record("repo_exists", neutral("GitHub unavailable", warning=f"GitHub lookup failed: {res.error}"))
        elif repo_url:
            tally.record(
                "repo_exists", {"score": 0.3, "note": "Not a GitHub URL", "warning": "Code repository is not on GitHub"}
            )
        else:
            tally.record("repo_exists", neutral("No code repository provided"))

        if match and commit:
            res = await fetch_json(f"{repo_api}/commits/{quote(commit, safe='')}", headers=github_headers())
            if res.ok:
                tally.record("commit_exists", {"score": 1.0, "found": True, "commit": commit})
            elif res.status in (404, 422):
                tally.record("commit_exists", {"score": 0.0, "found": False, "error": f"Commit {commit} not found"})
            else:
                check = neutral("GitHub unavailable", warning=f"GitHub lookup failed: {res.error}")
                tally.record("commit_exists", check)
        else:
            tally.record("commit_exists", neutral("No commit to verify"))

        tally.record("reproducibility_files", neutral("Checked via reproducibility verifier"))
        tally.record("metric_plausibility", check_metric_plausibility(result.get("metrics")))

    # ------------------------------------------------------------------------
    # architecture
    # ------------------------------------------------------------------------
    async def verify_architecture(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        code = to_str(result.get("code"))
        layers = result.get("layers")
        params = to_num(result.get("param_count"))

        if not code.strip():
            tally.record("code_parseable", neutral("No code provided"))
        else:
            try:
                tree = ast.parse(code)
            except SyntaxError as e:
                tally.record(
                    "code_parseable",
                    {"score": 0.2, "parses": False, "error": f"Code does not parse: {e.msg} (line {e.lineno})"},
                )
            except (ValueError, RecursionError, MemoryError) as e:
                # null bytes (older interpreters) or nesting deeper than the parser allows
                message = f"Code could not be parsed: {type(e).__name__}"
                tally.record("code_parseable", {"score": 0.2, "parses": False, "error": message})
            else:
                definitions = sum(1 for node in ast.walk(tree) if isinstance(node, DEFINITION_NODES))
                score = 1.0 if definitions else 0.3
                tally.record("code_parseable", {"score": score, "parses": True, "definitions": definitions})

        if isinstance(layers, list) and layers:
            tally.record("layers_declared", {"score": 1.0, "n_layers": len(layers)})
        else:
            tally.record("layers_declared", neutral("No layers declared"))

        if params is None:
            tally.record("param_plausible", neutral("No param_count"))
        elif 0 < params < MAX_PLAUSIBLE_PARAMS:
            tally.record("param_plausible", {"score": 1.0, "param_count": params})
        else:
            tally.record(
                "param_plausible",
                {"score": 0.2, "param_count": params, "error": f"Parameter count {params:g} is implausible"},
            )
