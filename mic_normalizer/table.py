"""
Column pruning and payload-row filtering on the decoded table.

Columns keep their source position as label throughout; "position" in this
module always means the ``iloc`` position in the table at hand.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import pandas as pd

from .errors import MeasurementRegionError
from .rules import NormalizerConfig

logger = logging.getLogger(__name__)


def prune_empty_columns(table: pd.DataFrame) -> pd.DataFrame:
    """Drop columns that hold no value in any row. Idempotent."""
    keep = table.notna().any(axis=0)
    dropped = [c for c, k in keep.items() if not k]
    if dropped:
        logger.info("pruned %d empty columns", len(dropped))
        logger.debug("pruned columns: %s", dropped)
    return table.loc[:, keep].copy()


def _first_column_matching(table: pd.DataFrame, predicate) -> Optional[int]:
    for pos in range(table.shape[1]):
        col = table.iloc[:, pos].dropna()
        if col.map(predicate).any():
            return pos
    return None


def find_measurement_start(table: pd.DataFrame, config: NormalizerConfig) -> int:
    """
    Locate the first column of the measurement-triplet region.

    - ``config.measurement_start`` is taken as-is (range checked)
    - ``config.anchor_name`` selects the first column containing that exact name
    - otherwise the first column holding any cell shaped like a measurement name
    """
    n_cols = table.shape[1]

    if config.measurement_start is not None:
        if config.measurement_start >= n_cols:
            raise MeasurementRegionError(
                f"measurement_start={config.measurement_start} is outside a table "
                f"of {n_cols} columns",
                column=config.measurement_start,
            )
        return config.measurement_start

    if config.anchor_name is not None:
        anchor = config.anchor_name
        pos = _first_column_matching(table, lambda v: v.strip() == anchor)
        if pos is None:
            raise MeasurementRegionError(
                f"no column contains the anchor name {anchor!r}", value=anchor
            )
    else:
        pattern = config.name_regex
        pos = _first_column_matching(table, lambda v: pattern.fullmatch(v.strip()) is not None)
        if pos is None:
            raise MeasurementRegionError(
                f"no column contains a value shaped like a measurement name "
                f"({pattern.pattern})",
                value=pattern.pattern,
            )

    logger.info("measurement region starts at column %s (position %d)", table.columns[pos], pos)
    return pos


def rows_without_measurements(table: pd.DataFrame, start: int) -> List[int]:
    region = table.iloc[:, start:]
    empty = region.isna().all(axis=1)
    return [int(i) for i in empty[empty].index]


def drop_rows_without_measurements(table: pd.DataFrame, start: int) -> pd.DataFrame:
    """Drop exactly the rows whose cells from position ``start`` onward are all null."""
    dropped = rows_without_measurements(table, start)
    if dropped:
        logger.info("dropped %d rows without measurement data", len(dropped))
        logger.debug("dropped rows: %s", dropped)
    return table.drop(index=dropped)
