import asyncio

import pytest

from sciverify.services.verification.cross_cutting import runner
from sciverify.services.verification.cross_cutting.base import CrossCuttingVerifier
from sciverify.services.verification.cross_cutting.runner import applicable_verifiers, run_cross_cutting
from sciverify.services.verification.types import cc_result


class FixedVerifier(CrossCuttingVerifier):
    def __init__(self, name, weight=0.2, score=1.0, delay=0.0, applicable=True):
        self.name = name
        self.weight = weight
        self.score = score
        self.delay = delay
        self.applicable = applicable

    def is_applicable(self, claim_result):
        return self.applicable

    async def verify(self, claim_result, metadata):
        if self.delay:
            await asyncio.sleep(self.delay)
        return cc_result(self.name, self.weight, self.score, {"seen": sorted(claim_result)})


class CrashingVerifier(FixedVerifier):
    async def verify(self, claim_result, metadata):
        raise RuntimeError("parser exploded")


class BrokenApplicability(FixedVerifier):
    def is_applicable(self, claim_result):
        raise KeyError("citations")


def test_applicability_errors_exclude_the_verifier():
    verifiers = [FixedVerifier("a"), BrokenApplicability("b"), FixedVerifier("c", applicable=False)]
    assert [v.name for v in applicable_verifiers(verifiers, {})] == ["a"]


@pytest.mark.asyncio
async def test_no_applicable_verifiers_returns_empty():
    assert await run_cross_cutting({}, {}, verifiers=[FixedVerifier("a", applicable=False)]) == []


@pytest.mark.asyncio
async def test_default_verifiers_skip_claims_without_inspectable_fields():
    assert await run_cross_cutting({"answer": 42}, {}) == []
    assert [v.name for v in runner.DEFAULT_VERIFIERS] == [
        "citation_reference",
        "statistical_forensics",
        "data_integrity",
        "reproducibility",
    ]


@pytest.mark.asyncio
async def test_results_keep_registration_order():
    verifiers = [FixedVerifier("slow", delay=0.02), FixedVerifier("fast")]
    results = await run_cross_cutting({"x": 1}, {}, verifiers=verifiers, timeout=5)

    assert [r.verifier_name for r in results] == ["slow", "fast"]
    assert results[0].details == {"seen": ["x"]}
    assert results[0].compute_time_seconds > 0


@pytest.mark.asyncio
async def test_crash_becomes_zero_score():
    results = await run_cross_cutting({}, {}, verifiers=[CrashingVerifier("boom", weight=0.1)], timeout=5)

    assert len(results) == 1
    assert results[0].verifier_name == "boom"
    assert results[0].weight == 0.1
    assert results[0].score == 0.0
    assert results[0].errors == ["Verifier crashed: parser exploded"]


@pytest.mark.asyncio
async def test_timeout_discard_all():
    verifiers = [FixedVerifier("fast"), FixedVerifier("stuck", delay=10)]
    results = await run_cross_cutting({}, {}, verifiers=verifiers, timeout=0.05, policy="discard_all")
    assert results == []


@pytest.mark.asyncio
async def test_timeout_keep_finished():
    verifiers = [FixedVerifier("stuck", delay=10), FixedVerifier("fast", score=0.6)]
    results = await run_cross_cutting({}, {}, verifiers=verifiers, timeout=0.05, policy="keep_finished")

    assert [r.verifier_name for r in results] == ["stuck", "fast"]
    stuck, fast = results
    assert stuck.weight == 0.0
    assert stuck.score == 0.0
    assert stuck.errors == ["Timed out after 0.05s"]
    assert fast.score == 0.6
