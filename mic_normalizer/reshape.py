"""
Reshaping of validated triplets into named value / qualifier columns, and
serialization of the result.
"""

from __future__ import annotations

import io
import logging
import re
from collections import Counter
from typing import Hashable, List, Optional

import pandas as pd
from pandas.api.types import is_integer

from .errors import SchemaCollisionError
from .rules import (
    NORMALIZED_DELIMITER,
    NORMALIZED_LINE_TERMINATOR,
    TARGET_ENCODING,
    NormalizerConfig,
)
from .triplets import TripletDiscovery

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_value_whitespace(value: Optional[str]) -> Optional[str]:
    """``"<=   16 "`` -> ``"<= 16"``. ``None`` stays ``None``."""
    if value is None:
        return None
    return _WHITESPACE.sub(" ", value).strip()


def _check_unique(labels: List[Hashable]) -> None:
    dupes = [label for label, n in Counter(labels).items() if n > 1]
    if dupes:
        raise SchemaCollisionError(
            f"output columns would be duplicated: {dupes}",
            column=dupes[0],
            value=dupes[0],
        )


def reshape_triplets(
    table: pd.DataFrame, discovery: TripletDiscovery, config: NormalizerConfig
) -> pd.DataFrame:
    """
    Rename each triplet's value column to ``<name>`` and its qualifier column
    to ``<name><qualifier_suffix>``, dropping the name column. All other
    columns keep their positional label.
    """
    name_positions = {t.name_column for t in discovery.triplets.values()}
    renames = {}
    for t in discovery.triplets.values():
        renames[t.value_column] = t.name
        renames[t.qualifier_column] = f"{t.name}{config.qualifier_suffix}"

    positions: List[int] = []
    labels: List[Hashable] = []
    for pos, label in enumerate(table.columns):
        if pos in name_positions:
            continue
        positions.append(pos)
        labels.append(renames.get(pos, label))

    _check_unique(labels)

    value_positions = {t.value_column for t in discovery.triplets.values()}
    columns = {}
    for pos, label in zip(positions, labels):
        col = table.iloc[:, pos]
        if pos in value_positions:
            col = pd.Series(
                [normalize_value_whitespace(v) for v in col], index=col.index, dtype=object
            )
        columns[label] = col
    out = pd.DataFrame(columns, index=table.index, dtype=object)

    logger.info(
        "reshaped %d triplets into %d columns", len(discovery.triplets), out.shape[1]
    )
    return out


def output_header(table: pd.DataFrame, config: NormalizerConfig) -> List[str]:
    """Header row: positional labels as ``V<n>`` (1-based source field), names as-is."""
    header = [
        f"{config.positional_prefix}{label + 1}" if is_integer(label) else str(label)
        for label in table.columns
    ]
    _check_unique(header)
    return header


def to_csv_bytes(table: pd.DataFrame, config: NormalizerConfig) -> bytes:
    buf = io.StringIO(newline="")
    table.to_csv(
        buf,
        sep=NORMALIZED_DELIMITER,
        header=output_header(table, config),
        index=False,
        lineterminator=NORMALIZED_LINE_TERMINATOR,
        na_rep="",
    )
    return buf.getvalue().encode(TARGET_ENCODING)
