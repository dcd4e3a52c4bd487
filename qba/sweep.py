from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence

import numpy as np
import pandas as pd

from .errors import TRIAL_ERRORS


def sweep(
    fn: Callable[..., float],
    grid: Mapping[str, Sequence[Any]],
    *,
    undefined: str = "raise",
    **fixed: Any,
) -> pd.Series:
    """
    Evaluates fn(**fixed, **combo) for every combination of the swept values.

    The result Series is allocated up front over
    MultiIndex.from_product(grid.values()) and each combination writes its own
    slot. With undefined='nan' a combination whose adjustment is undefined
    stores NaN instead of raising.
    """
    if undefined not in {"raise", "nan"}:
        raise ValueError(f"Invalid undefined: {undefined}")
    if not grid:
        raise ValueError("grid must name at least one parameter to sweep.")

    names = list(grid)
    if len(names) == 1:
        index = pd.Index(list(grid[names[0]]), name=names[0])
        combos = [(v,) for v in index]
    else:
        index = pd.MultiIndex.from_product([list(grid[k]) for k in names], names=names)
        combos = list(index)
    values = np.full(len(index), np.nan, dtype=float)

    for pos, combo in enumerate(combos):
        kw = dict(fixed)
        kw.update(zip(names, combo))
        try:
            values[pos] = fn(**kw)
        except TRIAL_ERRORS:
            if undefined == "raise":
                raise

    return pd.Series(values, index=index, name=getattr(fn, "__name__", "value"))
