"""
Deterministic normalization rules.

Constants that never vary live at module level. Everything an operator may
want to change per file is a field of ``NormalizerConfig``, which is passed
explicitly into every stage.
"""

from __future__ import annotations

import re
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TARGET_ENCODING = "utf-8"
NORMALIZED_DELIMITER = ","
NORMALIZED_LINE_TERMINATOR = "\n"

# Byte order marks recognised before any statistical guessing.
BOMS: Tuple[Tuple[bytes, str], ...] = (
    (b"\xef\xbb\xbf", "utf-8"),
    (b"\xff\xfe", "utf-16-le"),
    (b"\xfe\xff", "utf-16-be"),
)

DEFAULT_CANDIDATE_ENCODINGS = ("utf_8", "utf_16_le", "utf_16_be", "cp1252", "latin_1")
DEFAULT_QUALIFIER_CODES = ("NOINTP", "SUSC", "RESIST", "INTER")

# optional whitespace, comparator run, optional whitespace, number
DEFAULT_VALUE_PATTERN = r"\s*[<=>]+\s*(?:\d+(?:\.\d*)?|\.\d+)\s*"


class NormalizerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    encoding: Optional[str] = None
    candidate_encodings: Tuple[str, ...] = DEFAULT_CANDIDATE_ENCODINGS
    detection_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    detection_prefix_bytes: int = Field(default=64 * 1024, gt=0)
    default_encoding: str = "latin_1"

    delimiter: str = "\t"
    line_terminator: str = "\r\n"

    name_charset: str = "A-Z"
    name_min_length: int = Field(default=2, ge=1)
    name_max_length: int = Field(default=8, ge=1)
    anchor_name: Optional[str] = None
    measurement_start: Optional[int] = Field(default=None, ge=0)

    value_pattern: str = DEFAULT_VALUE_PATTERN
    qualifier_codes: Tuple[str, ...] = DEFAULT_QUALIFIER_CODES
    strict_qualifiers: bool = False
    qualifier_suffix: str = "_RIS"

    positional_prefix: str = "V"
    timezone: str = "UTC"

    @field_validator("delimiter")
    @classmethod
    def _single_char_delimiter(cls, v: str) -> str:
        if len(v) != 1:
            raise ValueError("delimiter must be a single character")
        return v

    @field_validator("line_terminator")
    @classmethod
    def _non_empty_terminator(cls, v: str) -> str:
        if not v:
            raise ValueError("line_terminator must not be empty")
        return v

    @field_validator("qualifier_codes")
    @classmethod
    def _non_empty_codes(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v:
            raise ValueError("qualifier_codes must not be empty")
        return v

    @field_validator("value_pattern")
    @classmethod
    def _compilable(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as exc:
            raise ValueError(f"invalid value_pattern: {exc}") from exc
        return v

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {v!r}") from exc
        return v

    @model_validator(mode="after")
    def _length_bounds(self) -> "NormalizerConfig":
        if self.name_min_length > self.name_max_length:
            raise ValueError("name_min_length must not exceed name_max_length")
        return self

    @property
    def name_regex(self) -> "re.Pattern[str]":
        return re.compile(
            f"[{self.name_charset}]{{{self.name_min_length},{self.name_max_length}}}"
        )

    @property
    def value_regex(self) -> "re.Pattern[str]":
        return re.compile(self.value_pattern)
