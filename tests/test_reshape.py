import pytest

from conftest import make_table
from mic_normalizer.errors import SchemaCollisionError
from mic_normalizer.reshape import (
    normalize_value_whitespace,
    output_header,
    reshape_triplets,
    to_csv_bytes,
)
from mic_normalizer.rules import NormalizerConfig
from mic_normalizer.triplets import Triplet, TripletDiscovery, discover_triplets


@pytest.fixture
def table():
    # ID, NAME1, VAL1, RIS1
    return make_table([
        ["1", "AMIKAC", "<=   16", "SUSC"],
        ["2", None, None, None],
        ["3", "AMIKAC", " >  32 ", "RESIST"],
        ["4", "AMIKAC", "= 8", "INTER"],
        ["5", "AMIKAC", "<= 2", "NOINTP"],
    ])


def test_triplet_becomes_value_and_qualifier_columns(table, config):
    discovery = discover_triplets(table, 1, config)
    out = reshape_triplets(table, discovery, config)

    assert list(out.columns) == [0, "AMIKAC", "AMIKAC_RIS"]
    assert out["AMIKAC"].tolist() == ["<= 16", None, "> 32", "= 8", "<= 2"]
    assert out["AMIKAC_RIS"].tolist() == ["SUSC", None, "RESIST", "INTER", "NOINTP"]
    assert out[0].tolist() == ["1", "2", "3", "4", "5"]


def test_reshape_leaves_input_untouched(table, config):
    discovery = discover_triplets(table, 1, config)
    reshape_triplets(table, discovery, config)
    assert table.iloc[0, 2] == "<=   16"
    assert table.shape == (5, 4)


def test_output_column_names_are_unique(config):
    t = make_table([["1", "urine", "AMIKAC", "<= 16", "SUSC", "AMOCLA", "> 32", "RESIST"]])
    discovery = discover_triplets(t, 2, config)
    out = reshape_triplets(t, discovery, config)
    labels = list(out.columns)
    assert len(labels) == len(set(labels))
    assert labels == [0, 1, "AMIKAC", "AMIKAC_RIS", "AMOCLA", "AMOCLA_RIS"]


def test_same_name_in_two_triplets_collides(config):
    t = make_table([["1", "AMIKAC", "<= 16", "SUSC", "AMIKAC", "> 32", "RESIST"]])
    discovery = discover_triplets(t, 1, config)
    with pytest.raises(SchemaCollisionError) as exc_info:
        reshape_triplets(t, discovery, config)
    assert exc_info.value.column == "AMIKAC"


def test_custom_qualifier_suffix(table):
    cfg = NormalizerConfig(qualifier_suffix="_SIR")
    discovery = discover_triplets(table, 1, cfg)
    assert list(reshape_triplets(table, discovery, cfg).columns) == [0, "AMIKAC", "AMIKAC_SIR"]


def test_hand_built_discovery(table, config):
    discovery = TripletDiscovery(
        start=1,
        triplets={1: Triplet(name="AMK", name_column=1, value_column=2, qualifier_column=3)},
    )
    out = reshape_triplets(table, discovery, config)
    assert list(out.columns) == [0, "AMK", "AMK_RIS"]


@pytest.mark.parametrize(
    "raw, expected",
    [("<=   16", "<= 16"), ("\t> 32 ", "> 32"), ("=8", "=8"), (None, None)],
)
def test_normalize_value_whitespace(raw, expected):
    assert normalize_value_whitespace(raw) == expected


def test_header_labels_positional_columns(table, config):
    out = reshape_triplets(table, discover_triplets(table, 1, config), config)
    assert output_header(out, config) == ["V1", "AMIKAC", "AMIKAC_RIS"]


def test_csv_bytes(table, config):
    out = reshape_triplets(table, discover_triplets(table, 1, config), config)
    csv_bytes = to_csv_bytes(out, config)

    assert not csv_bytes.startswith(b"\xef\xbb\xbf")
    assert b"\x00" not in csv_bytes
    assert csv_bytes.decode("utf-8").splitlines() == [
        "V1,AMIKAC,AMIKAC_RIS",
        "1,<= 16,SUSC",
        "2,,",
        "3,> 32,RESIST",
        "4,= 8,INTER",
        "5,<= 2,NOINTP",
    ]
