import pytest

from sciverify.services.verification.score_merge import cc_weighted_average, merge_results
from sciverify.services.verification.types import cc_result, success_result


def domain_result(score=0.8, **kwargs):
    return success_result("genomics", score, {"component_scores": {"a": score}}, **kwargs)


def test_weighted_average_normalises_weights():
    results = [cc_result("citation", 0.15, 1.0, {}), cc_result("data_integrity", 0.10, 0.5, {})]
    assert cc_weighted_average(results) == pytest.approx(0.8)


def test_weighted_average_of_zero_weights_is_zero():
    assert cc_weighted_average([cc_result("timed_out", 0.0, 0.0, {})]) == 0.0
    assert cc_weighted_average([]) == 0.0


def test_no_cross_cutting_results_leaves_domain_result_untouched():
    result = domain_result()
    assert merge_results(result, []) is result
    assert merge_results(result, [cc_result("citation", 0.0, 0.0, {}, errors=["Timed out after 1s"])]) is result


def test_merge_blends_scores_and_collects_messages():
    cc = [
        cc_result("citation", 0.15, 0.4, {"n": 2}, warnings=["old citation"], compute_time_seconds=1.0),
        cc_result("reproducibility", 0.15, 0.2, {}, errors=["Repository not accessible"], compute_time_seconds=0.5),
    ]
    merged = merge_results(domain_result(0.9, warnings=["domain warning"], compute_time_seconds=2.0), cc, 0.7)

    # 0.7 * 0.9 + 0.3 * 0.3
    assert merged.score == 0.72
    assert merged.badge == "amber"
    assert merged.passed is True
    assert merged.warnings == ["domain warning", "old citation"]
    assert merged.errors == ["Repository not accessible"]
    assert merged.compute_time_seconds == pytest.approx(3.5)
    assert merged.details["component_scores"] == {"a": 0.9}
    assert [c["verifier"] for c in merged.details["cross_cutting"]] == ["citation", "reproducibility"]
    assert merged.details["scoring"] == {
        "domain_score": 0.9,
        "domain_weight": 0.7,
        "cc_aggregate_score": 0.3,
        "cc_weight_share": 0.3,
        "final_score": 0.72,
    }


def test_merge_never_exceeds_one():
    merged = merge_results(domain_result(1.0), [cc_result("citation", 0.15, 1.0, {})], 0.9)
    assert merged.score == 1.0
    assert merged.badge == "green"
