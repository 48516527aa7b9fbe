"""
End-to-end normalization of an instrument susceptibility export.

Steps:
- decode bytes (encoding resolution, filler units, CRLF records, tab fields)
- rectangularize (pad short rows)
- prune empty columns
- drop rows without measurement data
- discover and validate (name, value, qualifier) triplets
- reshape to <NAME> / <NAME>_RIS columns
- serialize to UTF-8 CSV

Any NormalizerError aborts the whole run; nothing is partially produced.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .decode import DecodedText, RecordStats, read_export_bytes, read_table
from .reshape import reshape_triplets, to_csv_bytes
from .rules import (
    NORMALIZED_DELIMITER,
    TARGET_ENCODING,
    NormalizerConfig,
)
from .table import (
    drop_rows_without_measurements,
    find_measurement_start,
    prune_empty_columns,
    rows_without_measurements,
)
from .triplets import TripletDiscovery, discover_triplets

logger = logging.getLogger(__name__)


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@dataclass
class NormalizationResult:
    table: pd.DataFrame
    report: Dict[str, Any]
    warnings: List[Dict[str, Any]] = field(default_factory=list)


def _encoding_report(decoded: DecodedText) -> Dict[str, Any]:
    res = decoded.resolution
    return {
        "detected": res.detected,
        "decode_used": res.encoding,
        "method": res.method,
        "bom": res.bom_length > 0,
        "confidence": res.confidence,
        "decode_fallback": res.method == "fallback",
        "filler_units": decoded.filler_units,
        "output": TARGET_ENCODING,
    }


def _measurement_report(table: pd.DataFrame, discovery: TripletDiscovery) -> Dict[str, Any]:
    return {
        "start_position": discovery.start,
        "start_column": int(table.columns[discovery.start]),
        "triplets": [
            {
                "name": t.name,
                "name_column": int(table.columns[t.name_column]),
                "value_column": int(table.columns[t.value_column]),
                "qualifier_column": int(table.columns[t.qualifier_column]),
            }
            for t in discovery.triplets.values()
        ],
        "skipped_positions": list(discovery.skipped),
    }


def normalize_export(raw: bytes, config: Optional[NormalizerConfig] = None) -> NormalizationResult:
    config = config or NormalizerConfig()

    table, decoded, stats = read_table(raw, config)
    warnings: List[Dict[str, Any]] = list(stats.warnings)

    if decoded.resolution.method == "fallback":
        warnings.append({
            "row": None,
            "column": None,
            "issue": "encoding_fallback",
            "value": decoded.resolution.detected,
            "action": f"decoded_as_{config.default_encoding}",
        })

    pruned = prune_empty_columns(table)
    pruned_columns = [int(c) for c in table.columns if c not in pruned.columns]

    start = find_measurement_start(pruned, config)
    dropped_rows = rows_without_measurements(pruned, start)
    filtered = drop_rows_without_measurements(pruned, start)
    for row in dropped_rows:
        warnings.append({
            "row": row,
            "column": None,
            "issue": "no_measurements",
            "value": None,
            "action": "row_dropped",
        })

    discovery = discover_triplets(filtered, start, config)
    warnings.extend(discovery.warnings)

    reshaped = reshape_triplets(filtered, discovery, config)

    report = {
        "encoding": _encoding_report(decoded),
        "records": {
            "line_terminator": config.line_terminator,
            "records": stats.records,
            "blank_lines_dropped": stats.blank_lines_dropped,
        },
        "delimiter": {
            "detected": config.delimiter,
            "output": NORMALIZED_DELIMITER,
        },
        "row_width": _row_width_report(stats),
        "columns": {
            "pruned": pruned_columns,
            "kept": pruned.shape[1],
        },
        "rows": {
            "dropped": dropped_rows,
            "kept": filtered.shape[0],
        },
        "measurements": _measurement_report(filtered, discovery),
        "timezone": config.timezone,
    }

    logger.info(
        "normalized export: %d rows x %d columns, %d measurements, %d warnings",
        reshaped.shape[0],
        reshaped.shape[1],
        len(discovery.triplets),
        len(warnings),
    )
    return NormalizationResult(table=reshaped, report=report, warnings=warnings)


def _row_width_report(stats: RecordStats) -> Dict[str, Any]:
    return {
        "max_columns_seen": stats.max_columns_seen,
        "short_rows_padded": stats.short_rows_padded,
        "total_rows": stats.records,
        "policy": {
            "short_rows": "pad",
            "long_rows": "error",
            "output_columns": "max_columns_seen",
        },
    }


def normalize_export_file(
    path: str | Path, config: Optional[NormalizerConfig] = None
) -> NormalizationResult:
    return normalize_export(read_export_bytes(path), config)


def normalize_export_bytes(raw: bytes, config: Optional[NormalizerConfig] = None) -> Dict[str, Any]:
    """
    Returns a dict matching the API's response envelope.
    """
    config = config or NormalizerConfig()
    result = normalize_export(raw, config)
    normalized_bytes = to_csv_bytes(result.table, config)

    b64 = base64.b64encode(normalized_bytes).decode("ascii")
    return {
        "normalized_csv": {
            "sha256": _sha256_hex(normalized_bytes),
            "encoding": TARGET_ENCODING,
            "content_b64": b64,
        },
        "report": {
            "summary": {
                "rows": int(result.table.shape[0]),
                "columns": int(result.table.shape[1]),
                "measurements": len(result.report["measurements"]["triplets"]),
                "warnings": len(result.warnings),
                "errors": 0,
                "deterministic": True,
            },
            "normalizations": result.report,
            "warnings": result.warnings,
            "errors": [],
        },
    }
