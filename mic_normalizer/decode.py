"""
Decoder: raw instrument export bytes -> rectangular nullable-string table.

Resolves three independent ambiguities of the export format:
- character encoding (BOM, statistical guess, configured fallback)
- field and record delimiters
- the "no value" representation (zero-length field or a NUL filler unit)

Decoding always happens at the code-unit width of the resolved encoding, so a
two-byte NUL filler is one empty code unit and never a string terminator.
"""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd
from charset_normalizer import from_bytes

from .errors import DecodeError, StructuralError
from .rules import BOMS, NormalizerConfig

logger = logging.getLogger(__name__)

FILLER = "\x00"


@dataclass(frozen=True)
class EncodingResolution:
    encoding: str
    method: str  # "hint", "bom", "detected" or "fallback"
    bom_length: int = 0
    detected: Optional[str] = None
    confidence: Optional[float] = None


@dataclass(frozen=True)
class DecodedText:
    text: str
    resolution: EncodingResolution
    filler_units: int = 0


@dataclass
class RecordStats:
    records: int = 0
    blank_lines_dropped: int = 0
    short_rows_padded: int = 0
    max_columns_seen: int = 0
    warnings: List[Dict[str, Any]] = field(default_factory=list)


def code_unit_width(encoding: str) -> int:
    """Width in bytes of one code unit of ``encoding``."""
    try:
        name = codecs.lookup(encoding).name
    except LookupError as exc:
        raise DecodeError(f"unsupported encoding: {encoding!r}", value=encoding) from exc
    if name.startswith("utf-16"):
        return 2
    if name.startswith("utf-32"):
        return 4
    return 1


def _utf16_by_nul_layout(sample: bytes, config: NormalizerConfig) -> Optional[EncodingResolution]:
    """
    BOM-less UTF-16 holding mostly ASCII puts a NUL in every other byte.
    charset-normalizer reads that as utf_8 with NULs, so check the layout first.
    """
    sample = sample[: len(sample) - len(sample) % 2]
    if not sample:
        return None
    half = len(sample) // 2
    even = sample[0::2].count(0) / half
    odd = sample[1::2].count(0) / half
    for encoding, high, low in (("utf_16_le", odd, even), ("utf_16_be", even, odd)):
        if encoding in config.candidate_encodings and high >= config.detection_confidence and high > low:
            return EncodingResolution(
                encoding=encoding,
                method="detected",
                detected=encoding,
                confidence=round(high, 4),
            )
    return None


def _detect(raw: bytes, config: NormalizerConfig) -> EncodingResolution:
    sample = raw[: config.detection_prefix_bytes]
    by_layout = _utf16_by_nul_layout(sample, config)
    if by_layout is not None:
        return by_layout

    match = from_bytes(sample, cp_isolation=list(config.candidate_encodings)).best()
    if match is None:
        logger.warning(
            "no candidate encoding matched; falling back to %s", config.default_encoding
        )
        return EncodingResolution(encoding=config.default_encoding, method="fallback")

    confidence = round(1.0 - float(match.chaos), 4)
    if confidence < config.detection_confidence:
        logger.warning(
            "best guess %s has confidence %.3f < %.3f; falling back to %s",
            match.encoding,
            confidence,
            config.detection_confidence,
            config.default_encoding,
        )
        return EncodingResolution(
            encoding=config.default_encoding,
            method="fallback",
            detected=match.encoding,
            confidence=confidence,
        )

    return EncodingResolution(
        encoding=match.encoding,
        method="detected",
        detected=match.encoding,
        confidence=confidence,
    )


def resolve_encoding(raw: bytes, config: NormalizerConfig) -> EncodingResolution:
    """
    Decide how ``raw`` is encoded.

    Order: explicit hint, byte order mark, alternating-NUL UTF-16 layout,
    statistical guess over a bounded prefix restricted to
    ``config.candidate_encodings``, configured default.
    """
    if config.encoding:
        code_unit_width(config.encoding)
        return EncodingResolution(encoding=config.encoding, method="hint")

    for bom, encoding in BOMS:
        if raw.startswith(bom):
            return EncodingResolution(encoding=encoding, method="bom", bom_length=len(bom))

    return _detect(raw, config)


def _decode_payload(payload: bytes, encoding: str, offset: int) -> str:
    width = code_unit_width(encoding)
    remainder = len(payload) % width
    if remainder:
        bad_at = offset + len(payload) - remainder
        raise DecodeError(
            f"{len(payload)} payload bytes are not a whole number of "
            f"{width}-byte code units for {encoding}",
            value=payload[-remainder:].hex(),
            offset=bad_at,
        )
    try:
        return payload.decode(encoding)
    except UnicodeDecodeError as exc:
        raise DecodeError(
            f"invalid {encoding} sequence at byte {offset + exc.start}: {exc.reason}",
            value=payload[exc.start : exc.end].hex(),
            offset=offset + exc.start,
        ) from exc


def decode_bytes(raw: bytes, config: NormalizerConfig) -> DecodedText:
    resolution = resolve_encoding(raw, config)
    payload = raw[resolution.bom_length :]

    try:
        text = _decode_payload(payload, resolution.encoding, resolution.bom_length)
    except DecodeError:
        if resolution.method != "detected":
            raise
        logger.warning(
            "decoding as detected %s failed; retrying with %s",
            resolution.encoding,
            config.default_encoding,
        )
        fallback = EncodingResolution(
            encoding=config.default_encoding,
            method="fallback",
            detected=resolution.detected,
            confidence=resolution.confidence,
        )
        try:
            text = _decode_payload(payload, fallback.encoding, resolution.bom_length)
        except DecodeError as exc:
            raise DecodeError(
                f"auto-detected {resolution.encoding} and fallback "
                f"{config.default_encoding} both failed: {exc.message}",
                offset=exc.offset,
                value=exc.value,
            ) from exc
        resolution = fallback

    if text.startswith("\ufeff"):
        text = text[1:]

    filler_units = text.count(FILLER)
    if filler_units:
        text = text.replace(FILLER, "")

    logger.info(
        "decoded %d bytes as %s (%s), %d filler units",
        len(raw),
        resolution.encoding,
        resolution.method,
        filler_units,
    )
    return DecodedText(text=text, resolution=resolution, filler_units=filler_units)


def split_records(text: str, config: NormalizerConfig) -> Tuple[List[List[str]], RecordStats]:
    """Split decoded text into records of raw field strings, discarding blank lines."""
    stats = RecordStats()
    rows: List[List[str]] = []

    # the terminator after the last record does not open a blank line
    body = text
    if body.endswith(config.line_terminator):
        body = body[: -len(config.line_terminator)]

    if body:
        for line in body.split(config.line_terminator):
            if line == "":
                stats.blank_lines_dropped += 1
                continue
            rows.append(line.split(config.delimiter))

    stats.records = len(rows)
    return rows, stats


def to_table(
    rows: Sequence[Sequence[str]],
    width: Optional[int] = None,
    stats: Optional[RecordStats] = None,
) -> pd.DataFrame:
    """
    Build a rectangular table of nullable strings.

    Short rows are right-padded with ``None`` up to ``width`` (default: the
    widest row). Empty fields become ``None`` as well. Columns are labelled by
    source field position.
    """
    observed = max((len(r) for r in rows), default=0)
    if width is None:
        width = observed

    cells: List[List[Optional[str]]] = []
    for i, row in enumerate(rows):
        if len(row) > width:
            raise StructuralError(
                f"row {i} has {len(row)} fields, table width is {width}",
                row=i,
                value=len(row),
            )
        if len(row) < width and stats is not None:
            stats.short_rows_padded += 1
            stats.warnings.append({
                "row": i,
                "column": None,
                "issue": "row_too_short",
                "value": str(len(row)),
                "action": f"padded_to_{width}",
            })
        cells.append([v if v != "" else None for v in row] + [None] * (width - len(row)))

    if stats is not None:
        stats.max_columns_seen = observed

    return pd.DataFrame(cells, columns=list(range(width)), dtype=object)


def read_table(
    raw: bytes, config: NormalizerConfig
) -> Tuple[pd.DataFrame, DecodedText, RecordStats]:
    decoded = decode_bytes(raw, config)
    rows, stats = split_records(decoded.text, config)
    table = to_table(rows, stats=stats)
    logger.info(
        "read %d records, %d columns (%d short rows padded, %d blank lines dropped)",
        stats.records,
        table.shape[1],
        stats.short_rows_padded,
        stats.blank_lines_dropped,
    )
    return table, decoded, stats


def read_export_bytes(path: str | Path) -> bytes:
    p = Path(path).expanduser()
    with p.open("rb") as fh:
        return fh.read()


def read_table_file(
    path: str | Path, config: NormalizerConfig
) -> Tuple[pd.DataFrame, DecodedText, RecordStats]:
    return read_table(read_export_bytes(path), config)
