import math

import pytest

from qba.formulas import adjust_ratio
from qba.sweep import sweep
from qba.errors import UndefinedAdjustment


def test_sweep_covers_full_product():
    out = sweep(
        adjust_ratio,
        {"S11": [0.4, 0.5, 0.6], "S01": [0.5, 0.6]},
        observed_ratio=1.65,
        S00=0.8,
        S10=0.8,
    )
    assert len(out) == 6
    assert out.index.names == ["S11", "S01"]
    assert out.loc[(0.5, 0.6)] == pytest.approx(1.98)


def test_sweep_undefined_policy():
    grid = {"S00": [0.0, 0.8]}
    with pytest.raises(UndefinedAdjustment):
        sweep(adjust_ratio, grid, observed_ratio=1.5, S01=0.6, S10=0.8, S11=0.5)

    out = sweep(adjust_ratio, grid, undefined="nan", observed_ratio=1.5, S01=0.6, S10=0.8, S11=0.5)
    assert math.isnan(out.loc[0.0])
    assert out.loc[0.8] == pytest.approx(1.5 * 0.48 / 0.4)
