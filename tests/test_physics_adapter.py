import pytest

from sciverify.services.verification.adapters.physics import (
    PhysicsAdapter,
    check_boundary_conditions,
    check_conservation,
    check_convergence,
    check_stability,
    check_unit_consistency,
)


def test_conservation_within_one_percent():
    check = check_conservation(
        [{"name": "energy", "initial": 100, "final": 100.5}, {"name": "momentum", "initial": 10, "final": 12}]
    )
    assert check["score"] == 0.5
    assert check["warning"] == "Not conserved: momentum"


def test_conservation_with_missing_values_counts_against():
    check = check_conservation([{"name": "mass"}])
    assert check["score"] == 0.0
    assert "warning" not in check


def test_conservation_of_zero_quantity_uses_absolute_floor():
    assert check_conservation([{"name": "charge", "initial": 0.0, "final": 1e-12}])["score"] == 1.0


@pytest.mark.parametrize(
    "series,expected",
    [
        (list(range(1, 11)), 1.0),
        ([1] * 9 + [2000], 0.2),
        ([1, "nan", 2], 0.0),
        ([1, 2], 0.5),
        (None, 0.5),
    ],
)
def test_stability(series, expected):
    assert check_stability(series)["score"] == expected


@pytest.mark.parametrize(
    "errors,expected",
    [
        ([1.0, 0.5, 0.25, 0.125], 1.0),
        ([1.0, 0.5, 0.6, 0.3], 0.7),
        ([1.0, 0.9, 1.1, 1.2], 0.4),
        ([1.0, 2.0, 3.0, 4.0], 0.1),
        ([0.1], 0.5),
    ],
)
def test_convergence(errors, expected):
    assert check_convergence(errors)["score"] == expected


def test_convergence_warns_when_not_decreasing():
    assert check_convergence([1.0, 2.0, 3.0])["warning"] == "Convergence errors are not decreasing"


def test_boundary_conditions_relative_tolerance():
    check = check_boundary_conditions([{"expected": 1, "actual": 1.04}, {"expected": 0, "actual": 0.1}])
    assert check == {"score": 0.5, "satisfied": 1, "total": 2}


def test_unit_consistency():
    variables = [{"name": "v", "unit": "m/s"}, {"name": "t", "units": "s"}, {"name": "k"}]
    assert check_unit_consistency(variables)["score"] == pytest.approx(0.8)
    assert check_unit_consistency([{"name": "k"}])["score"] == 0.3
    assert check_unit_consistency([])["score"] == 0.5


@pytest.mark.asyncio
async def test_numerical_simulation_end_to_end():
    result = await PhysicsAdapter().verify(
        {
            "conserved_quantities": [{"name": "energy", "initial": 1.0, "final": 1.001}],
            "time_series": [0.1, 0.2, 0.15, 0.18, 0.2, 0.19],
            "convergence_errors": [1e-1, 1e-2, 1e-3, 1e-4],
            "boundary_conditions": [{"expected": 0.0, "actual": 0.0}],
        },
        {},
    )

    assert result.details["claim_type"] == "numerical_simulation"
    assert result.score == 1.0
    assert result.passed is True


@pytest.mark.asyncio
async def test_analytical_derivation_is_degraded():
    result = await PhysicsAdapter().verify(
        {"variables": [{"name": "F", "unit": "N"}, {"name": "m", "unit": "kg"}]},
        {"claim_type": "analytical_derivation"},
    )

    assert result.details["component_scores"] == {
        "dimensional_consistency": 0.5,
        "symbolic_validity": 0.5,
        "unit_consistency": 1.0,
    }
    assert result.score == 0.675
    assert "Dimensional and symbolic checks degraded: pint and sympy are not available" in result.warnings


def test_stability_tells_non_numeric_values_from_nan():
    assert check_stability([1, "nan", 2])["error"] == "NaN or Inf detected in time series"
    assert check_stability([1, float("inf"), 2])["error"] == "NaN or Inf detected in time series"
    check = check_stability([1, "n/a", {"v": 2}, 3])
    assert check["score"] == 0.0
    assert check["error"] == "2 non-numeric value(s) in time series"
