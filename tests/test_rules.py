import pydantic
import pytest

from mic_normalizer.rules import NormalizerConfig


def test_defaults():
    cfg = NormalizerConfig()
    assert cfg.delimiter == "\t"
    assert cfg.line_terminator == "\r\n"
    assert cfg.qualifier_codes == ("NOINTP", "SUSC", "RESIST", "INTER")
    assert cfg.name_regex.fullmatch("AMIKAC")
    assert not cfg.name_regex.fullmatch("A")
    assert not cfg.name_regex.fullmatch("AMIKACINE")
    assert cfg.value_regex.fullmatch(" <=   16")


def test_config_is_immutable():
    cfg = NormalizerConfig()
    with pytest.raises(pydantic.ValidationError):
        cfg.delimiter = ","


@pytest.mark.parametrize(
    "kwargs",
    [
        {"delimiter": "\t\t"},
        {"line_terminator": ""},
        {"detection_confidence": 1.5},
        {"name_min_length": 5, "name_max_length": 3},
        {"qualifier_codes": ()},
        {"value_pattern": "[<"},
        {"timezone": "Mars/Olympus_Mons"},
    ],
)
def test_invalid_config_is_rejected(kwargs):
    with pytest.raises(pydantic.ValidationError):
        NormalizerConfig(**kwargs)


def test_name_shape_is_configurable():
    cfg = NormalizerConfig(name_charset="A-Z0-9", name_min_length=3, name_max_length=10)
    assert cfg.name_regex.fullmatch("CIPRO500")
