import json
from pathlib import Path

import numpy as np
import pandas as pd
import pytest


def _records(n: int, a: int, y: int, **extra: int) -> dict:
    out = {"a": [a] * n, "y": [y] * n}
    for k, v in extra.items():
        out[k] = [v] * n
    return out


def table_frame(a: int, b: int, c: int, d: int, outcome_col: str = "y", **extra: int) -> pd.DataFrame:
    """Records reproducing a 2x2 table exactly (a=exposed cases, b=unexposed cases, ...)."""
    parts = [
        pd.DataFrame(_records(a, 1, 1, **extra), dtype=int),
        pd.DataFrame(_records(b, 0, 1, **extra), dtype=int),
        pd.DataFrame(_records(c, 1, 0, **extra), dtype=int),
        pd.DataFrame(_records(d, 0, 0, **extra), dtype=int),
    ]
    df = pd.concat(parts, ignore_index=True)
    if outcome_col != "y":
        df = df.rename(columns={"y": outcome_col})
    return df


@pytest.fixture
def misclassified_df() -> pd.DataFrame:
    """
    Stratified dataset with outcome misclassification in stratum x=1 only:
    true y observed as m_y with sens=0.8/spec=0.99 for x=1, perfectly for x=0.
    """
    rng = np.random.default_rng(11)
    n = 4000
    x = rng.binomial(1, 0.5, size=n)
    a = rng.binomial(1, 0.3 + 0.2 * x)
    p = 1 / (1 + np.exp(-(-2.5 + 0.7 * a + 0.5 * x)))
    y = rng.binomial(1, p)

    m_y = y.copy()
    in_x1 = x == 1
    flip = rng.uniform(size=n)
    m_y[in_x1 & (y == 1)] = (flip[in_x1 & (y == 1)] < 0.8).astype(int)
    m_y[in_x1 & (y == 0)] = (flip[in_x1 & (y == 0)] < 0.01).astype(int)

    return pd.DataFrame({"a": a, "m_y": m_y, "x": x})


@pytest.fixture
def selection_df() -> pd.DataFrame:
    rng = np.random.default_rng(3)
    n = 3000
    a = rng.binomial(1, 0.4, size=n)
    y = rng.binomial(1, 0.1 + 0.05 * a)
    s = np.ones(n, dtype=int)
    s[rng.uniform(size=n) < 0.2] = 0
    return pd.DataFrame({"a": a, "y": y, "s": s})


@pytest.fixture
def write_json():
    def _write(path: Path, payload: dict) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_table_frame():
    return table_frame
