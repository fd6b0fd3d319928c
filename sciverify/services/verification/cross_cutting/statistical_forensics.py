"""
Statistical forensics: checks for fabricated or implausible statistics.

- GRIM: a mean of n integers times n must land near an integer
- SPRITE: a mean/SD pair must be reachable by some bounded integer sample
- Benford: leading digits of reported numbers against log10(1 + 1/d)
- p-curve: share of significant p-values below .025, plus a KS test

A heuristic without enough data reports ``applicable: False`` with a neutral
score and is left out of the average.
"""

from __future__ import annotations

import math
import time
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

import numpy as np

from sciverify.constants.config import (
    BENFORD_MIN_NUMBERS,
    FORENSICS_KEYS,
    GRIM_MAX_N,
    KS_CRITICAL_COEFFICIENT,
    PCURVE_MIN_SIGNIFICANT,
    SPRITE_DEFAULT_SCALE,
    SPRITE_MAX_ITERATIONS,
    SPRITE_MAX_N,
    SPRITE_MAX_SCALE_RANGE,
    SPRITE_SEED,
)
from sciverify.services.common.coercion import first_present, round4, to_num
from sciverify.services.common.statistics import chi2_survival, mean, std_dev
from sciverify.services.verification.cross_cutting.base import CrossCuttingVerifier
from sciverify.services.verification.types import CrossCuttingResult, cc_result

BENFORD_EXPECTED = {d: math.log10(1 + 1 / d) for d in range(1, 10)}


def skipped(note: str) -> Dict[str, Any]:
    return {"score": 0.5, "applicable": False, "note": note}


# ----------------------------------------------------------------------------
# Extraction
# ----------------------------------------------------------------------------
def extract_means(claim_result: Mapping[str, Any]) -> List[Dict[str, Any]]:
    for key in ("means", "statistical_claims"):
        entries = claim_result.get(key)
        if isinstance(entries, list):
            return [e for e in entries if isinstance(e, dict) and "mean" in e]
    return []


def _is_open_unit(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and 0 < value < 1


def extract_p_values(claim_result: Mapping[str, Any]) -> List[float]:
    direct = claim_result.get("p_values")
    if isinstance(direct, list) and direct:
        return [float(p) for p in direct if _is_open_unit(p)]

    claims = claim_result.get("statistical_claims")
    if not isinstance(claims, list):
        return []
    return [float(c["p_value"]) for c in claims if isinstance(c, dict) and _is_open_unit(c.get("p_value"))]


def _walk_numbers(obj: Any) -> Iterator[float]:
    if isinstance(obj, bool):
        return
    if isinstance(obj, (int, float)):
        number = to_num(obj)
        if number:
            yield abs(number)
    elif isinstance(obj, (list, tuple)):
        for item in obj:
            yield from _walk_numbers(item)
    elif isinstance(obj, dict):
        for value in obj.values():
            yield from _walk_numbers(value)


def extract_all_numbers(claim_result: Mapping[str, Any]) -> List[float]:
    numbers: List[float] = []
    for key in ("metrics", "results_summary", "statistical_claims", "means", "p_values"):
        if claim_result.get(key):
            numbers.extend(_walk_numbers(claim_result[key]))
    return numbers


# ----------------------------------------------------------------------------
# GRIM
# ----------------------------------------------------------------------------
def grim_consistent(reported_mean: float, n: int) -> Dict[str, Any]:
    product = n * reported_mean
    remainder = abs(product - round(product))
    return {
        "mean": reported_mean,
        "n": n,
        "product": round4(product),
        "remainder": round4(remainder),
        "consistent": remainder <= n * 0.005 + 0.01,
    }


def run_grim(entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    results = []
    oversized = 0
    for entry in entries:
        reported_mean = to_num(entry.get("mean"))
        n = to_num(first_present(entry, "n", "sample_size"))
        if reported_mean is None or n is None or n <= 0:
            continue
        if n > GRIM_MAX_N or not math.isfinite(n * reported_mean):
            oversized += 1
            continue
        results.append(grim_consistent(reported_mean, int(n)))

    notes = [f"GRIM: {oversized} mean(s) skipped, sample size or mean too large to check"] if oversized else []
    if not results:
        check = skipped("No mean+n pairs")
        if notes:
            check["warnings"] = notes
        return check

    passed = sum(1 for r in results if r["consistent"])
    failed = len(results) - passed
    return {
        "score": round4(passed / len(results)),
        "applicable": True,
        "passed": passed,
        "failed": failed,
        "total": len(results),
        "results": results[:10],
        "warnings": ([f"GRIM: {failed} inconsistent mean(s)"] if failed else []) + notes,
    }


# ----------------------------------------------------------------------------
# SPRITE
# ----------------------------------------------------------------------------
def _lcg(seed: int) -> Callable[[], float]:
    state = seed

    def rand() -> float:
        nonlocal state
        state = (state * 1664525 + 1013904223) & 0x7FFFFFFF
        return state / 0x7FFFFFFF

    return rand


def sprite_check(
    target_mean: float,
    target_sd: float,
    n: int,
    scale_min: int,
    scale_max: int,
    max_iter: int = SPRITE_MAX_ITERATIONS,
) -> bool:
    """
    Search for an integer sample on [scale_min, scale_max] whose mean is
    within 0.005 and SD within 0.05 of the targets.

    Steps one random element toward the target mean each iteration. The
    generator is a fixed-seed LCG so the verdict is reproducible.
    """
    rand = _lcg(SPRITE_SEED)

    def rand_int(low: int, high: int) -> int:
        return low + math.floor(rand() * (high - low + 1))

    data = [rand_int(scale_min, scale_max) for _ in range(n)]
    for _ in range(max_iter):
        current_mean = mean(data)
        current_sd = std_dev(data)
        if abs(current_mean - target_mean) < 0.005 and abs(current_sd - target_sd) < 0.05:
            return True

        idx = rand_int(0, n - 1)
        if current_mean < target_mean:
            data[idx] = min(data[idx] + 1, scale_max)
        elif current_mean > target_mean:
            data[idx] = max(data[idx] - 1, scale_min)
        else:
            data[idx] = rand_int(scale_min, scale_max)
    return False


def run_sprite(entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    results = []
    for entry in entries:
        reported_mean = to_num(entry.get("mean"))
        sd = to_num(first_present(entry, "sd", "std"))
        n = to_num(first_present(entry, "n", "sample_size"))
        if reported_mean is None or sd is None or n is None:
            continue
        int_n = int(n)
        if not 0 < int_n <= SPRITE_MAX_N:
            continue

        scale_min = int(to_num(entry.get("scale_min"), SPRITE_DEFAULT_SCALE[0]))
        scale_max = int(to_num(entry.get("scale_max"), SPRITE_DEFAULT_SCALE[1]))
        if not 0 < scale_max - scale_min <= SPRITE_MAX_SCALE_RANGE:
            continue
        achievable = sprite_check(reported_mean, sd, int_n, scale_min, scale_max)
        results.append({"mean": reported_mean, "sd": sd, "n": int_n, "achievable": achievable})

    if not results:
        return skipped("No mean+sd+n triples")

    passed = sum(1 for r in results if r["achievable"])
    failed = len(results) - passed
    return {
        "score": round4(passed / len(results)),
        "applicable": True,
        "passed": passed,
        "failed": failed,
        "total": len(results),
        "results": results[:10],
        "warnings": [f"SPRITE: {failed} implausible mean/SD combination(s)"] if failed else [],
    }


# ----------------------------------------------------------------------------
# Benford
# ----------------------------------------------------------------------------
def leading_digit(value: float) -> Optional[int]:
    digit = f"{abs(value):e}"[0]
    return int(digit) if digit in "123456789" else None


def run_benford(numbers: List[float]) -> Dict[str, Any]:
    counts = {d: 0 for d in range(1, 10)}
    for value in numbers:
        digit = leading_digit(value)
        if digit is not None:
            counts[digit] += 1

    total = sum(counts.values())
    if total < BENFORD_MIN_NUMBERS:
        return skipped("Too few leading digits")

    chi2 = total * sum((counts[d] / total - BENFORD_EXPECTED[d]) ** 2 / BENFORD_EXPECTED[d] for d in counts)
    p_value = chi2_survival(chi2, 8)

    if p_value > 0.10:
        score = 1.0
    elif p_value > 0.05:
        score = 0.7
    elif p_value > 0.01:
        score = 0.4
    else:
        score = 0.1

    return {
        "score": score,
        "applicable": True,
        "chi2": round4(chi2),
        "p_value_approx": round(p_value, 6),
        "digit_counts": {str(d): c for d, c in counts.items()},
        "total_numbers": total,
        "warnings": [f"Benford's law: chi2={chi2:.2f}, p={p_value:.4f}"] if p_value < 0.05 else [],
    }


# ----------------------------------------------------------------------------
# p-curve
# ----------------------------------------------------------------------------
def run_pcurve(p_values: List[float]) -> Dict[str, Any]:
    significant = [p for p in p_values if 0 < p < 0.05]
    if len(significant) < PCURVE_MIN_SIGNIFICANT:
        return skipped("Too few significant p-values")

    n = len(significant)
    below_midpoint = sum(1 for p in significant if p < 0.025) / n

    # KS distance of p/0.05 against U(0, 1)
    normalised = np.sort(np.asarray(significant) / 0.05)
    upper = np.arange(1, n + 1) / n - normalised
    lower = normalised - np.arange(0, n) / n
    ks_stat = float(max(np.abs(upper).max(), np.abs(lower).max()))
    ks_critical = KS_CRITICAL_COEFFICIENT / math.sqrt(n)
    uniform_rejected = ks_stat > ks_critical

    if below_midpoint > 0.6:
        score = 1.0
    elif below_midpoint > 0.4:
        score = 0.5 if uniform_rejected else 0.7
    else:
        score = 0.3

    return {
        "score": score,
        "applicable": True,
        "significant_p_count": n,
        "total_p_count": len(p_values),
        "proportion_below_025": round4(below_midpoint),
        "ks_statistic": round4(ks_stat),
        "ks_critical_005": round4(ks_critical),
        "uniform_rejected": uniform_rejected,
        "warnings": ["P-curve suggests possible p-hacking"] if score < 0.5 else [],
    }


class StatisticalForensicsVerifier(CrossCuttingVerifier):
    name = "statistical_forensics"
    weight = 0.10

    def is_applicable(self, claim_result: Mapping[str, Any]) -> bool:
        return any(claim_result.get(key) for key in FORENSICS_KEYS)

    async def verify(self, claim_result: Dict[str, Any], metadata: Mapping[str, Any]) -> CrossCuttingResult:
        start = time.perf_counter()
        means = extract_means(claim_result)
        p_values = extract_p_values(claim_result)
        numbers = extract_all_numbers(claim_result)

        if len(numbers) >= BENFORD_MIN_NUMBERS:
            benford = run_benford(numbers)
        else:
            benford = skipped(f"Insufficient numbers (<{BENFORD_MIN_NUMBERS})")
        if len(p_values) >= PCURVE_MIN_SIGNIFICANT:
            pcurve = run_pcurve(p_values)
        else:
            pcurve = skipped(f"Insufficient p-values (<{PCURVE_MIN_SIGNIFICANT})")

        components = {
            "grim": run_grim(means) if means else skipped("No means data"),
            "sprite": run_sprite(means) if means else skipped("No means data"),
            "benford": benford,
            "pcurve": pcurve,
        }

        warnings: List[str] = []
        for component in components.values():
            warnings.extend(component.pop("warnings", []))

        applied = [c["score"] for c in components.values() if c["applicable"]]
        score = sum(applied) / len(applied) if applied else 0.5
        return cc_result(
            self.name,
            self.weight,
            round4(score),
            components,
            warnings=warnings,
            compute_time_seconds=time.perf_counter() - start,
        )
