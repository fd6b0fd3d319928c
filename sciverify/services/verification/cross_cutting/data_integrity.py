"""
Data integrity: schema consistency, duplicate rows, outliers and checksums.

Checksums use ``content_hash``, a 32-bit string hash over canonical JSON. It
is a parity check between what the agent declared and what it submitted,
not a cryptographic guarantee.
"""

from __future__ import annotations

import json
import time
from typing import Any, Dict, List, Mapping, Optional

import numpy as np

from sciverify.constants.config import (
    DATA_CONTAINER_KEYS,
    DATA_INTEGRITY_KEYS,
    OUTLIER_MIN_COLUMN_VALUES,
    OUTLIER_Z_THRESHOLD,
)
from sciverify.services.common.coercion import as_dict, as_dict_list, first_present, round4, to_str
from sciverify.services.verification.cross_cutting.base import CrossCuttingVerifier
from sciverify.services.verification.types import CrossCuttingResult, cc_result

Rows = List[Dict[str, Any]]


def skipped(note: str) -> Dict[str, Any]:
    return {"score": 0.5, "applicable": False, "note": note}


def canonical_json(value: Any) -> str:
    """Compact JSON in key insertion order, the form checksums are computed over."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def content_hash(text: str) -> str:
    """
    Java-style ``h = 31*h + c`` over UTF-16 code units, wrapped to a signed
    32-bit int and rendered as hex (a leading ``-`` for negative values).
    """
    h = 0
    encoded = text.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        h = (h * 31 + int.from_bytes(encoded[i : i + 2], "little")) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return f"-{-h:x}".rjust(8, "0") if h < 0 else f"{h:x}".rjust(8, "0")


def serialize_blob(blob: Any) -> str:
    return canonical_json(blob) if isinstance(blob, (dict, list)) else to_str(blob)


def extract_rows(claim_result: Mapping[str, Any]) -> Optional[Rows]:
    """Tabular rows from data/dataset/raw_data, else the numeric results_summary as one row."""
    for key in DATA_CONTAINER_KEYS:
        raw = claim_result.get(key)
        if isinstance(raw, list) and raw and isinstance(raw[0], dict):
            return as_dict_list(raw)
        if isinstance(raw, dict):
            nested = first_present(raw, "rows", "records")
            if isinstance(nested, list):
                return as_dict_list(nested)

    summary = claim_result.get("results_summary")
    if isinstance(summary, dict):
        numeric = {
            k: v for k, v in summary.items() if isinstance(v, (int, float)) and not isinstance(v, bool)
        }
        if numeric:
            return [numeric]
    return None


def check_schema(rows: Rows, schema: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not rows:
        return skipped("No data")

    fields = first_present(schema, "fields", "columns") if schema else None
    if isinstance(fields, list) and fields:
        expected = {to_str(f) for f in fields}
        actual = set(rows[0])
        missing = expected - actual
        check: Dict[str, Any] = {
            "score": round4((len(expected) - len(missing)) / len(expected)),
            "applicable": True,
            "expected_fields": sorted(expected),
            "missing_fields": sorted(missing),
            "extra_fields": sorted(actual - expected),
        }
        if missing:
            check["warnings"] = [f"Missing schema fields: {', '.join(sorted(missing))}"]
        return check

    if len(rows) < 2:
        return {"score": 1.0, "applicable": True, "note": "Single row, schema consistent"}

    reference = set(rows[0])
    inconsistent = 0
    for row in rows[1:]:
        if set(row) != reference:
            inconsistent += 1
            if inconsistent >= 5:
                break

    return {
        "score": round4(max(0.0, 1.0 - inconsistent / min(len(rows) - 1, 100))),
        "applicable": True,
        "total_rows": len(rows),
        "inconsistent_rows": inconsistent,
        "columns": sorted(reference),
    }


def check_duplicates(rows: Rows) -> Dict[str, Any]:
    if len(rows) < 2:
        return {"score": 1.0, "applicable": True, "duplicates": 0}

    seen = set()
    duplicates = 0
    for row in rows:
        key = json.dumps(row, sort_keys=True, default=str)
        if key in seen:
            duplicates += 1
        else:
            seen.add(key)

    ratio = duplicates / len(rows)
    if ratio > 0.5:
        score = 0.1
    elif ratio > 0.2:
        score = 0.4
    elif ratio > 0.05:
        score = 0.7
    else:
        score = 1.0

    return {
        "score": score,
        "applicable": True,
        "total_rows": len(rows),
        "exact_duplicates": duplicates,
        "duplicate_ratio": round4(ratio),
        "warnings": [f"{duplicates} exact duplicate rows detected"] if duplicates else [],
    }


def check_outliers(rows: Rows) -> Dict[str, Any]:
    if not rows:
        return skipped("No data")

    columns: Dict[str, List[float]] = {}
    for row in rows:
        for key, value in row.items():
            if isinstance(value, (int, float)) and not isinstance(value, bool) and np.isfinite(value):
                columns.setdefault(key, []).append(float(value))

    if not columns:
        return skipped("No numeric columns")

    outlier_columns: Dict[str, int] = {}
    total_values = 0
    total_outliers = 0
    for name, values in columns.items():
        if len(values) < OUTLIER_MIN_COLUMN_VALUES:
            continue
        total_values += len(values)

        arr = np.asarray(values)
        std = arr.std()
        if std == 0:
            continue
        count = int((np.abs((arr - arr.mean()) / std) > OUTLIER_Z_THRESHOLD).sum())
        if count:
            outlier_columns[name] = count
            total_outliers += count

    if total_values == 0:
        return skipped("Insufficient numeric data")

    ratio = total_outliers / total_values
    if ratio > 0.10:
        score = 0.2
    elif ratio > 0.05:
        score = 0.5
    elif ratio > 0.01:
        score = 0.8
    else:
        score = 1.0

    warnings = []
    if ratio > 0.05:
        warnings.append(f"High outlier ratio ({ratio * 100:.1f}%) in columns: {', '.join(outlier_columns)}")
    return {
        "score": score,
        "applicable": True,
        "columns_checked": len(columns),
        "total_values": total_values,
        "total_outliers": total_outliers,
        "outlier_ratio": round(ratio, 6),
        "outlier_columns": outlier_columns,
        "warnings": warnings,
    }


def _locate_blob(claim_result: Mapping[str, Any], key: str) -> Any:
    if claim_result.get(key) is not None:
        return claim_result[key]
    for container_key in DATA_CONTAINER_KEYS:
        container = claim_result.get(container_key)
        if isinstance(container, dict) and key in container:
            return container[key]
    return None


def check_hashes(claim_result: Mapping[str, Any], checksums: Dict[str, Any]) -> Dict[str, Any]:
    checks = []
    matches = 0
    for key, expected in checksums.items():
        blob = _locate_blob(claim_result, key)
        if blob is None:
            checks.append({"key": key, "match": False, "note": "Data not found"})
            continue

        expected = to_str(expected)
        actual = content_hash(serialize_blob(blob))
        match = actual == expected
        checks.append({"key": key, "match": match, "expected": expected[:16] + "...", "actual": actual[:16] + "..."})
        if match:
            matches += 1

    mismatches = len(checks) - matches
    return {
        "score": round4(matches / len(checks)) if checks else 0.5,
        "applicable": True,
        "matches": matches,
        "mismatches": mismatches,
        "checks": checks,
        "warnings": [f"{mismatches} hash mismatch(es)"] if mismatches else [],
    }


class DataIntegrityVerifier(CrossCuttingVerifier):
    name = "data_integrity"
    weight = 0.10

    def is_applicable(self, claim_result: Mapping[str, Any]) -> bool:
        return any(claim_result.get(key) for key in DATA_INTEGRITY_KEYS)

    async def verify(self, claim_result: Dict[str, Any], metadata: Mapping[str, Any]) -> CrossCuttingResult:
        start = time.perf_counter()
        rows = extract_rows(claim_result)
        checksums = as_dict(claim_result.get("output_checksums"))
        schema = as_dict(first_present(claim_result, "schema", "expected_schema")) or None

        components = {
            "schema_valid": check_schema(rows, schema) if rows is not None else skipped("No data for schema check"),
            "no_duplicates": check_duplicates(rows) if rows is not None else skipped("No data for duplicate check"),
            "no_outliers": check_outliers(rows) if rows is not None else skipped("No data for outlier check"),
            "hash_match": check_hashes(claim_result, checksums) if checksums else skipped("No checksums"),
        }

        warnings: List[str] = []
        for component in components.values():
            warnings.extend(component.pop("warnings", []))

        applied = [c["score"] for c in components.values() if c.get("applicable") is not False]
        score = sum(applied) / len(applied) if applied else 0.5

        details: Dict[str, Any] = dict(components)
        details["component_scores"] = {name: c["score"] for name, c in components.items()}
        return cc_result(
            self.name,
            self.weight,
            round4(score),
            details,
            warnings=warnings,
            compute_time_seconds=time.perf_counter() - start,
        )
