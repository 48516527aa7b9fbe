import pandas as pd
import pytest

from mic_normalizer.rules import NormalizerConfig

# Sample id, timestamp, an always-empty field, organism, then triplets.
EXPORT_ROWS = [
    ["S001", "2024-01-05 10:12", "", "E. coli", "AMIKAC", "<=   16", "SUSC", "AMOCLA", "> 32", "RESIST"],
    ["S002", "2024-01-05 10:40", "\x00", "K. pneumoniae", "AMIKAC", "<= 2", "SUSC"],
    [""],
    ["S003", "2024-01-06 08:00"],
    ["S004", "2024-01-06 09:30", "", "P. aeruginosa", "", "", "", "AMOCLA", "= 8", "INTER"],
]

EXPECTED_CSV = (
    "V1,V2,V4,AMIKAC,AMIKAC_RIS,AMOCLA,AMOCLA_RIS\n"
    "S001,2024-01-05 10:12,E. coli,<= 16,SUSC,> 32,RESIST\n"
    "S002,2024-01-05 10:40,K. pneumoniae,<= 2,SUSC,,\n"
    "S004,2024-01-06 09:30,P. aeruginosa,,,= 8,INTER\n"
)


def encode_export(rows, encoding="utf-16-le", bom=b"\xff\xfe"):
    text = "\r\n".join("\t".join(r) for r in rows) + "\r\n"
    return bom + text.encode(encoding)


def make_table(rows):
    width = max(len(r) for r in rows)
    return pd.DataFrame([list(r) + [None] * (width - len(r)) for r in rows], dtype=object)


@pytest.fixture
def config():
    return NormalizerConfig()


@pytest.fixture
def export_bytes():
    return encode_export(EXPORT_ROWS)
