"""
Discovery and validation of (name, value, qualifier) measurement triplets.

The export carries no header. From the measurement-region start onward the
columns repeat as name / value / qualifier, and each name column holds a
single measurement code (e.g. ``AMIKAC``) in every row that has a result for
it. Discovery is purely positional; validation makes sure the positional
guess and the data agree before anything gets renamed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

import pandas as pd

from .errors import ValidationError
from .rules import NormalizerConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Triplet:
    name: str
    name_column: int
    value_column: int
    qualifier_column: int


@dataclass
class TripletDiscovery:
    """
    Result of ``discover_triplets``.

    ``triplets`` is keyed by the position of the triplet's name column.
    ``skipped`` lists the starting positions of all-null groups that were
    left to pass through.
    """
    start: int
    triplets: Dict[int, Triplet] = field(default_factory=dict)
    skipped: List[int] = field(default_factory=list)
    warnings: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def names(self) -> List[str]:
        return [t.name for t in self.triplets.values()]


def _non_null(table: pd.DataFrame, pos: int) -> pd.Series:
    return table.iloc[:, pos].dropna()


def _validate_name_column(table: pd.DataFrame, pos: int, config: NormalizerConfig) -> str:
    cells = _non_null(table, pos).map(str.strip)
    label = table.columns[pos]
    distinct = list(dict.fromkeys(cells))
    if len(distinct) > 1:
        first_other = int(cells.index[cells != distinct[0]][0])
        raise ValidationError(
            f"name column {label} holds {len(distinct)} distinct names {distinct}; "
            "the measurement region offset is wrong or a record is irregular",
            row=first_other,
            column=label,
            value=distinct[1],
        )
    name = distinct[0]
    if config.name_regex.fullmatch(name) is None:
        raise ValidationError(
            f"name column {label} holds {name!r}, which is not shaped like a "
            "measurement name",
            row=int(cells.index[0]),
            column=label,
            value=name,
        )
    return name


def _validate_value_column(table: pd.DataFrame, pos: int, name: str, config: NormalizerConfig) -> None:
    pattern = config.value_regex
    label = table.columns[pos]
    for row, cell in _non_null(table, pos).items():
        if pattern.fullmatch(cell) is None:
            raise ValidationError(
                f"value column {label} for {name} holds {cell!r}, expected a "
                "comparator followed by a number",
                row=int(row),
                column=label,
                value=cell,
            )


def _check_qualifier_column(
    table: pd.DataFrame,
    pos: int,
    name: str,
    config: NormalizerConfig,
    warnings: List[Dict[str, Any]],
) -> None:
    known = set(config.qualifier_codes)
    label = table.columns[pos]
    for row, cell in _non_null(table, pos).items():
        code = cell.strip()
        if code in known:
            continue
        if config.strict_qualifiers:
            raise ValidationError(
                f"qualifier column {label} for {name} holds unknown code {code!r}",
                row=int(row),
                column=label,
                value=code,
            )
        logger.warning("unknown qualifier code %r for %s at row %s", code, name, row)
        warnings.append({
            "row": int(row),
            "column": str(label),
            "issue": "unknown_qualifier",
            "value": code,
            "action": "kept",
        })


def _cross_check_alignment(
    table: pd.DataFrame, start: int, names: Set[str], config: NormalizerConfig
) -> None:
    """Catch off-by-one triplet alignment: names must only sit in name positions."""
    pattern = config.name_regex
    for pos in range(start, table.shape[1]):
        offset = (pos - start) % 3
        if offset == 0:
            continue
        label = table.columns[pos]
        for row, cell in _non_null(table, pos).items():
            stripped = cell.strip()
            misplaced = (
                pattern.fullmatch(stripped) is not None
                if offset == 1
                else stripped in names
            )
            if misplaced:
                raise ValidationError(
                    f"measurement name {stripped!r} found in column {label}, which is "
                    f"not a name position (triplets start at position {start})",
                    row=int(row),
                    column=label,
                    value=stripped,
                )


def _candidate_names(table: pd.DataFrame, start: int) -> Set[str]:
    names: Set[str] = set()
    for pos in range(start, table.shape[1], 3):
        names.update(c.strip() for c in _non_null(table, pos))
    return names


def discover_triplets(
    table: pd.DataFrame, start: int, config: NormalizerConfig
) -> TripletDiscovery:
    """Group the region from ``start`` into triplets and validate every one of them."""
    n_cols = table.shape[1]
    discovery = TripletDiscovery(start=start)

    _cross_check_alignment(table, start, _candidate_names(table, start), config)

    for pos in range(start, n_cols, 3):
        group = list(range(pos, min(pos + 3, n_cols)))
        name_cells = _non_null(table, pos)

        if len(group) < 3:
            if not name_cells.empty:
                raise ValidationError(
                    f"incomplete triplet at column {table.columns[pos]}: only "
                    f"{len(group)} of 3 columns present",
                    row=int(name_cells.index[0]),
                    column=table.columns[pos],
                    value=name_cells.iloc[0],
                )
            continue

        if name_cells.empty:
            for other in group[1:]:
                data = _non_null(table, other)
                if not data.empty:
                    raise ValidationError(
                        f"column {table.columns[other]} holds data but its name column "
                        f"{table.columns[pos]} is empty",
                        row=int(data.index[0]),
                        column=table.columns[other],
                        value=data.iloc[0],
                    )
            discovery.skipped.append(pos)
            continue

        name = _validate_name_column(table, pos, config)
        _validate_value_column(table, pos + 1, name, config)
        _check_qualifier_column(table, pos + 2, name, config, discovery.warnings)
        discovery.triplets[pos] = Triplet(
            name=name,
            name_column=pos,
            value_column=pos + 1,
            qualifier_column=pos + 2,
        )
        logger.debug("triplet %s at positions %d-%d", name, pos, pos + 2)

    logger.info("discovered %d measurement triplets", len(discovery.triplets))
    return discovery
