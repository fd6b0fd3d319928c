"""
Physics domain adapter.

Numerical simulations get real checks (conservation, stability, convergence,
boundary conditions). Dimensional and symbolic checks need pint and sympy,
which this stack does not carry, so they score neutral with a warning.
"""

from __future__ import annotations

from typing import Any, Dict, List

import numpy as np

from sciverify.services.common.coercion import as_dict_list, as_number_list, round4, to_num, to_str
from sciverify.services.verification.adapters.base import ComponentTally, DomainAdapter, neutral

CONSERVATION_RTOL = 0.01
BOUNDARY_RTOL = 0.05
ABS_FLOOR = 1e-10
BLOW_UP_RATIO = 1000


def check_conservation(quantities: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Each quantity must keep |initial - final| within 1% of |initial|."""
    if not quantities:
        return neutral("No conserved quantities declared")

    passed = 0
    checks = []
    for quantity in quantities:
        name = to_str(quantity.get("name"), "unnamed")
        initial, final = to_num(quantity.get("initial")), to_num(quantity.get("final"))
        if initial is None or final is None:
            checks.append({"name": name, "note": "Missing initial/final"})
            continue

        deviation = abs(initial - final)
        conserved = deviation <= max(abs(initial) * CONSERVATION_RTOL, ABS_FLOOR)
        checks.append(
            {"name": name, "initial": initial, "final": final, "deviation": round4(deviation), "conserved": conserved}
        )
        if conserved:
            passed += 1

    check: Dict[str, Any] = {"score": passed / len(checks), "checks": checks}
    violated = [c["name"] for c in checks if c.get("conserved") is False]
    if violated:
        check["warning"] = f"Not conserved: {', '.join(violated)}"
    return check


def _non_finite(raw: Any) -> bool:
    """True for a number (or numeric string) that only fails coercion by being NaN, Inf or out of range."""
    if isinstance(raw, bool):
        return False
    if isinstance(raw, (int, float)):
        return True
    if isinstance(raw, str):
        try:
            float(raw)
        except ValueError:
            return False
        return True
    return False


def check_stability(series: Any) -> Dict[str, Any]:
    if not isinstance(series, list) or len(series) < 3:
        return neutral("No time series data")

    values = [to_num(v) for v in series]
    rejected = [raw for raw, v in zip(series, values) if v is None]
    if any(_non_finite(raw) for raw in rejected):
        return {"score": 0.0, "error": "NaN or Inf detected in time series"}
    if rejected:
        return {"score": 0.0, "error": f"{len(rejected)} non-numeric value(s) in time series"}

    magnitudes = np.abs(np.asarray(values, dtype=float))
    max_first = float(magnitudes[:5].max())
    max_last = float(magnitudes[-5:].max())
    if max_first > 0 and max_last / max_first > BLOW_UP_RATIO:
        growth = round4(max_last / max_first)
        return {
            "score": 0.2,
            "note": "Possible numerical blow-up",
            "growth_ratio": growth,
            "warning": f"Time series grew {growth}x, possible numerical blow-up",
        }
    return {"score": 1.0, "stable": True, "n_points": len(values)}


def check_convergence(errors: List[float]) -> Dict[str, Any]:
    if len(errors) < 2:
        return neutral("No convergence data")

    steps = np.diff(np.asarray(errors, dtype=float))
    fraction = float((steps < 0).mean())
    if fraction > 0.8:
        score = 1.0
    elif fraction > 0.5:
        score = 0.7
    elif fraction > 0.3:
        score = 0.4
    else:
        score = 0.1
    check: Dict[str, Any] = {
        "score": score,
        "fraction_decreasing": round4(fraction),
        "initial_error": errors[0],
        "final_error": errors[-1],
    }
    if score < 0.5:
        check["warning"] = "Convergence errors are not decreasing"
    return check


def check_boundary_conditions(conditions: List[Dict[str, Any]]) -> Dict[str, Any]:
    if not conditions:
        return neutral("No boundary conditions declared")

    satisfied = 0
    for condition in conditions:
        expected, actual = to_num(condition.get("expected")), to_num(condition.get("actual"))
        if expected is None or actual is None:
            continue
        if abs(expected - actual) <= max(abs(expected) * BOUNDARY_RTOL, ABS_FLOOR):
            satisfied += 1
    return {"score": satisfied / len(conditions), "satisfied": satisfied, "total": len(conditions)}


def check_unit_consistency(variables: List[Dict[str, Any]]) -> Dict[str, Any]:
    if not variables:
        return neutral("No variables declared")

    with_units = sum(1 for v in variables if v.get("unit") or v.get("units"))
    if not with_units:
        message = "No units declared on any variable"
        return {"score": 0.3, "note": message, "warning": message}

    coverage = with_units / len(variables)
    return {
        "score": min(1.0, coverage * 1.2),
        "variables_with_units": with_units,
        "total_variables": len(variables),
        "coverage": round4(coverage),
    }


class PhysicsAdapter(DomainAdapter):
    domain = "physics"
    default_claim_type = "numerical_simulation"
    component_weights = {
        "numerical_simulation": {
            "conservation_laws": 0.30,
            "stability": 0.25,
            "convergence": 0.25,
            "boundary_conditions": 0.20,
        },
        "analytical_derivation": {
            "dimensional_consistency": 0.35,
            "symbolic_validity": 0.30,
            "unit_consistency": 0.35,
        },
        "dimensional_analysis": {
            "dimensional_consistency": 0.40,
            "unit_consistency": 0.30,
            "groups_declared": 0.30,
        },
    }

    async def verify_numerical_simulation(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        tally.record("conservation_laws", check_conservation(as_dict_list(result.get("conserved_quantities"))))
        tally.record("stability", check_stability(result.get("time_series")))
        tally.record("convergence", check_convergence(as_number_list(result.get("convergence_errors"))))
        tally.record("boundary_conditions", check_boundary_conditions(as_dict_list(result.get("boundary_conditions"))))

    async def verify_analytical_derivation(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        tally.record("dimensional_consistency", neutral("pint unavailable; neutral score"))
        tally.record("symbolic_validity", neutral("sympy unavailable; neutral score"))
        tally.record("unit_consistency", check_unit_consistency(as_dict_list(result.get("variables"))))
        tally.warn("Dimensional and symbolic checks degraded: pint and sympy are not available")

    async def verify_dimensional_analysis(self, result: Dict[str, Any], tally: ComponentTally) -> None:
        tally.record("dimensional_consistency", neutral("pint unavailable; neutral score"))
        tally.record("unit_consistency", check_unit_consistency(as_dict_list(result.get("variables"))))

        groups = result.get("dimensionless_groups")
        if isinstance(groups, list) and groups:
            tally.record("groups_declared", {"score": 1.0, "n_groups": len(groups)})
        else:
            tally.record("groups_declared", neutral("No dimensionless groups declared"))
        tally.warn("Dimensional checks degraded: pint is not available")
