"""MATLAB 互換の1次元線形補間。

WORLD の ``interp1`` と同じく、``x`` の範囲外は端の区間を延長して外挿する
（``np.interp`` のような端値への張り付きはしない）。
"""

import numpy as np

from worldbridge.exceptions import ShapeMismatchError


def interp1(
    x: np.ndarray,
    y: np.ndarray,
    xi: np.ndarray,
    out: np.ndarray | None = None,
) -> np.ndarray:
    """``(x, y)`` を結ぶ折れ線の ``xi`` における値を求める。

    Args:
        x: 昇順の標本点。2点以上。
        y: ``x`` と同じ長さの標本値。
        xi: 補間したい点。
        out: 書き込み先。省略時は ``xi`` と同じ長さの配列を確保する。

    Returns:
        補間値（``out`` を渡した場合はそれ自身）。

    """
    xs = np.ascontiguousarray(x, dtype=np.float64)
    ys = np.ascontiguousarray(y, dtype=np.float64)
    query = np.ascontiguousarray(xi, dtype=np.float64)
    if xs.ndim != 1 or ys.ndim != 1 or query.ndim != 1:
        raise ShapeMismatchError("interp1 ndim", 1, (xs.ndim, ys.ndim, query.ndim))
    if len(xs) != len(ys):
        raise ShapeMismatchError("len(x) == len(y)", len(xs), len(ys))
    if len(xs) < 2:
        raise ShapeMismatchError("len(x)", "at least 2", len(xs))

    result = out if out is not None else np.empty(len(query), dtype=np.float64)
    if len(result) != len(query):
        raise ShapeMismatchError("len(xi) == len(out)", len(query), len(result))

    # 区間 [x[k-1], x[k]] を選ぶ。範囲外は最初/最後の区間
    k = np.clip(np.searchsorted(xs, query, side="right"), 1, len(xs) - 1)
    x0 = xs[k - 1]
    y0 = ys[k - 1]
    slope = (ys[k] - y0) / (xs[k] - x0)
    result[:] = y0 + (query - x0) * slope
    return result
