"""
Epidemiology domain adapter.

Incidence rates are checked against the WHO Global Health Observatory; odds
ratios and their Woolf confidence intervals are recomputed from the 2x2
table. Kaplan-Meier and log-rank recomputation need lifelines and score
neutral.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from sciverify.constants.config import WHO_GHO_API
from sciverify.services.common.coercion import as_dict_list, first_str, round4, to_num
from sciverify.services.common.http_client import fetch_json
from sciverify.services.common.statistics import median
from sciverify.services.verification.adapters.base import ComponentTally, DomainAdapter, neutral

DEFAULT_RATE_PER = 100_000
WOOLF_Z = 1.96


def _pair(value: Any) -> Optional[List[float]]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return None
    lower, upper = to_num(value[0]), to_num(value[1])
    if lower is None or upper is None:
        return None
    return [lower, upper]


def _table(value: Any) -> Optional[List[List[Any]]]:
    if (
        isinstance(value, list)
        and len(value) == 2
        and all(isinstance(row, list) and len(row) == 2 for row in value)
    ):
        return value
    return None


class EpidemiologyAdapter(DomainAdapter):
    domain = "epidemiology"
    default_claim_type = "incidence_rate"
    component_weights = {
        "incidence_rate": {
            "who_data_match": 0.30,
            "denominator_valid": 0.20,
            "rate_recomputed": 0.25,
            "ci_valid": 0.25,
        },
        "odds_ratio": {
            "table_valid": 0.20,
            "or_recomputed": 0.30,
            "ci_recomputed": 0.25,
            "pvalue_plausible": 0.25,
        },
        "survival_analysis": {
            "data_valid": 0.25,
            "hr_plausible": 0.25,
            "km_recomputed": 0.25,
            "logrank_valid": 0.25,
        },
    }

    # ------------------------------------------------------------------------
    # incidence_rate
    # ------------------------------------------------------------------------
    async def verify_incidence_rate(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        indicator = first_str(result, "indicator_code")
        country = first_str(result, "country")
        rate = to_num(result.get("rate"))
        denominator_raw = result.get("denominator")
        denominator = to_num(denominator_raw)
        cases = to_num(result.get("cases"))

        if indicator and country:
            tally.record("who_data_match", await self._who_data(indicator, country, rate))
        else:
            tally.record("who_data_match", neutral("No indicator/country for WHO lookup"))

        if denominator_raw is None:
            tally.record("denominator_valid", neutral("No denominator"))
        elif denominator is not None and denominator > 0:
            tally.record("denominator_valid", {"score": 1.0, "denominator": denominator})
        else:
            tally.record(
                "denominator_valid",
                {"score": 0.0, "denominator": denominator_raw, "error": f"Denominator {denominator_raw} must be > 0"},
            )

        if cases is None or denominator is None or denominator <= 0:
            tally.record("rate_recomputed", neutral("Cannot recompute rate"))
        else:
            rate_per = to_num(result.get("rate_per"), DEFAULT_RATE_PER)
            computed = cases / denominator * rate_per
            if rate is None:
                tally.record("rate_recomputed", neutral("No claimed rate", computed=round4(computed)))
            else:
                tolerance = max(abs(rate) * 0.05, 0.01)
                match = abs(rate - computed) <= tolerance
                check = {
                    "score": 1.0 if match else 0.3,
                    "claimed": rate,
                    "computed": round4(computed),
                    "match": match,
                }
                if not match:
                    check["warning"] = f"Claimed rate {rate} differs from computed {round4(computed)} per {rate_per:g}"
                tally.record("rate_recomputed", check)

        tally.record("ci_valid", _confidence_interval(result))

    async def _who_data(self, indicator: str, country: str, claimed: Optional[float]) -> Dict[str, Any]:
        query = f"$filter=SpatialDim eq '{country}'&$orderby=TimeDim desc&$top=5"
        res = await fetch_json(f"{WHO_GHO_API}/{quote(indicator, safe='')}?{quote(query, safe='=&$')}")
        records = as_dict_list(res.data.get("value")) if res.ok and isinstance(res.data, dict) else []
        if not records:
            return neutral(
                "WHO GHO lookup failed or no data",
                warning=f"WHO GHO returned no data for {indicator}/{country}"
                + (f" ({res.error})" if res.error else ""),
            )

        latest = records[0]
        who_value = to_num(latest.get("NumericValue"))
        if who_value is None:
            return neutral("No numeric value in WHO data")
        if claimed is None:
            return neutral("No claimed rate to compare", who_value=who_value)

        tolerance = max(abs(who_value) * 0.20, 1)
        match = abs(claimed - who_value) <= tolerance
        return {
            "score": 1.0 if match else 0.3,
            "match": match,
            "claimed": claimed,
            "who_value": who_value,
            "year": latest.get("TimeDim"),
            "tolerance": round4(tolerance),
        }

    # ------------------------------------------------------------------------
    # odds_ratio
    # ------------------------------------------------------------------------
    async def verify_odds_ratio(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        raw_table = result.get("contingency_table")
        table = _table(raw_table)
        cells: Optional[List[float]] = None

        if raw_table is None:
            tally.record("table_valid", neutral("No table"))
        elif table is None:
            tally.record("table_valid", {"score": 0.0, "error": "Invalid 2x2 table"})
        else:
            values = [to_num(v) for row in table for v in row]
            if all(v is not None and v >= 0 for v in values):
                cells = values
                tally.record("table_valid", {"score": 1.0, "table": table})
            else:
                tally.record("table_valid", {"score": 0.0, "table": table, "error": "Table cells must be counts >= 0"})

        claimed_or = to_num(result.get("odds_ratio"))
        if cells is None:
            tally.record("or_recomputed", neutral("No contingency table"))
            tally.record("ci_recomputed", neutral("No table for CI"))
        else:
            a, b, c, d = cells
            tally.record("or_recomputed", _recompute_odds_ratio(a, b, c, d, claimed_or))
            tally.record("ci_recomputed", _woolf_interval(a, b, c, d, _pair(result.get("confidence_interval"))))

        raw_p = result.get("p_value")
        p_value = to_num(raw_p)
        if raw_p is None:
            tally.record("pvalue_plausible", neutral("No p-value claimed"))
        elif p_value is not None and 0 <= p_value <= 1:
            tally.record("pvalue_plausible", {"score": 1.0, "p_value": p_value})
        else:
            tally.record("pvalue_plausible", {"score": 0.0, "p_value": raw_p, "error": "p-value out of [0,1]"})

    # ------------------------------------------------------------------------
    # survival_analysis
    # ------------------------------------------------------------------------
    async def verify_survival_analysis(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        times = result.get("survival_times")
        events = result.get("events")
        if isinstance(times, list) and isinstance(events, list):
            aligned = len(times) == len(events) and len(times) > 0
            non_negative = all(to_num(t) is not None and to_num(t) >= 0 for t in times)
            check: Dict[str, Any] = {
                "score": 1.0 if aligned and non_negative else 0.3,
                "n_subjects": len(times),
                "n_events": sum(1 for e in events if to_num(e) == 1),
            }
            if not aligned:
                check["warning"] = "survival_times and events differ in length or are empty"
            elif not non_negative:
                check["error"] = "Survival times must be non-negative numbers"
            else:
                numeric_times = [to_num(t) for t in times]
                check["observed_median_time"] = round4(median(numeric_times))
                claimed_median = to_num(result.get("median_survival"))
                if claimed_median is not None and not min(numeric_times) <= claimed_median <= max(numeric_times):
                    check["warning"] = f"Median survival {claimed_median} lies outside the observed follow-up times"
            tally.record("data_valid", check)
        else:
            tally.record("data_valid", neutral("No survival data"))

        raw_hr = result.get("hazard_ratio")
        hazard_ratio = to_num(raw_hr)
        if raw_hr is None:
            tally.record("hr_plausible", neutral("No HR claimed"))
        elif hazard_ratio is not None and 0 < hazard_ratio <= 20:
            tally.record("hr_plausible", {"score": 1.0, "hazard_ratio": hazard_ratio})
        elif hazard_ratio is not None and 0 < hazard_ratio <= 100:
            tally.record(
                "hr_plausible",
                {"score": 0.5, "hazard_ratio": hazard_ratio, "warning": f"Hazard ratio {hazard_ratio} is extreme"},
            )
        else:
            tally.record(
                "hr_plausible", {"score": 0.1, "hazard_ratio": raw_hr, "error": f"Hazard ratio {raw_hr} implausible"}
            )

        tally.record("km_recomputed", neutral("lifelines unavailable — neutral score"))
        tally.record("logrank_valid", neutral("lifelines unavailable — neutral score"))
        tally.warn("lifelines unavailable — KM/log-rank recomputation skipped")


def _recompute_odds_ratio(a: float, b: float, c: float, d: float, claimed: Optional[float]) -> Dict[str, Any]:
    if b <= 0 or c <= 0:
        return {"score": 0.3, "note": "Zero cell in denominator", "warning": "Zero cell prevents OR recomputation"}
    computed = (a * d) / (b * c)
    if claimed is None:
        return neutral("No odds ratio claimed", computed=round4(computed))
    tolerance = max(abs(computed) * 0.05, 0.01)
    match = abs(claimed - computed) <= tolerance
    check = {"score": 1.0 if match else 0.3, "claimed": claimed, "computed": round4(computed), "match": match}
    if not match:
        check["warning"] = f"Claimed OR {claimed} differs from recomputed {round4(computed)}"
    return check


def _woolf_interval(a: float, b: float, c: float, d: float, claimed: Optional[List[float]]) -> Dict[str, Any]:
    if min(a, b, c, d) <= 0:
        message = "Zero cell prevents CI computation"
        return {"score": 0.3, "note": message, "warning": message}

    ln_or = math.log((a * d) / (b * c))
    se = math.sqrt(1 / a + 1 / b + 1 / c + 1 / d)
    lower = math.exp(ln_or - WOOLF_Z * se)
    upper = math.exp(ln_or + WOOLF_Z * se)
    computed = [round4(lower), round4(upper)]

    if claimed is None:
        return neutral("No confidence interval claimed", computed=computed)

    lower_match = abs(claimed[0] - lower) / max(lower, 0.01) < 0.1
    upper_match = abs(claimed[1] - upper) / max(upper, 0.01) < 0.1
    return {"score": 1.0 if lower_match and upper_match else 0.3, "claimed": claimed, "computed": computed}


def _confidence_interval(result: Dict[str, Any]) -> Dict[str, Any]:
    ci = _pair(result.get("confidence_interval"))
    if ci is None:
        return neutral("No confidence interval")

    lower, upper = ci
    rate = to_num(result.get("rate"))
    issues = []
    if lower >= upper:
        issues.append("CI lower >= upper")
    if rate is not None and not lower <= rate <= upper:
        issues.append("Point estimate outside CI")
    if lower < 0:
        issues.append("CI lower bound negative (may be OK for some measures)")

    score = 1.0 if not issues else max(0.2, 1.0 - len(issues) * 0.3)
    check: Dict[str, Any] = {"score": round4(score), "ci": ci, "issues": issues}
    if issues:
        check["warning"] = "; ".join(issues)
    return check
