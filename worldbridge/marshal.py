"""行列 <-> 列ポインタ配列の相互変換。

数値エンジンは2次元配列を「列ごとの先頭ポインタの配列」(``double **``) として
受け取る。こちら側では列優先 (Fortran順) の連続バッファをアリーナとして確保し、
列オフセットのインデックスからポインタ列を導出する。順変換はコピーを伴わない。
"""

import ctypes
from dataclasses import dataclass
from typing import Any

import numpy as np

from worldbridge.exceptions import ShapeMismatchError

_DOUBLE_P = ctypes.POINTER(ctypes.c_double)


def allocate_columns(rows: int, cols: int) -> np.ndarray:
    """shape (rows, cols) のゼロ初期化済み列優先 float64 行列を確保する。"""
    return np.zeros((rows, cols), dtype=np.float64, order="F")


def column_offsets(rows: int, cols: int) -> np.ndarray:
    """列優先バッファにおける各列先頭の要素オフセット。"""
    return np.arange(cols, dtype=np.intp) * rows


@dataclass(frozen=True, slots=True)
class ColumnPointers:
    """列ポインタ配列と、その参照先バッファの組。

    ``owner`` を保持することで、ポインタが生きている間はバッファが解放されない。
    ``pointers`` はそのまま ``double **`` 引数として ctypes 呼び出しに渡せる。
    """

    pointers: Any
    rows: int
    owner: np.ndarray | None = None

    def __len__(self) -> int:
        return len(self.pointers)

    def __getitem__(self, index: int) -> Any:
        return self.pointers[index]

    def column(self, index: int) -> np.ndarray:
        """列 ``index`` の ``rows`` 要素を指す numpy ビュー（コピーしない）。"""
        return np.ctypeslib.as_array(self.pointers[index], shape=(self.rows,))


def to_pointer_columns(matrix: np.ndarray) -> ColumnPointers:
    """列優先行列から列ポインタ配列を作る。O(cols)、コピーなし。

    行数・列数のどちらかが0なら空のポインタ配列を返す。
    """
    if matrix.ndim != 2:
        msg = f"Expected a 2-D matrix, got ndim={matrix.ndim}"
        raise ValueError(msg)

    rows, cols = matrix.shape
    if rows == 0 or cols == 0:
        return ColumnPointers(pointers=(_DOUBLE_P * 0)(), rows=rows, owner=matrix)

    if matrix.dtype != np.float64:
        msg = f"Expected float64 matrix, got {matrix.dtype}"
        raise ValueError(msg)
    if not matrix.flags.f_contiguous:
        msg = "Matrix must be column-contiguous (Fortran order)"
        raise ValueError(msg)

    base = matrix.ctypes.data
    itemsize = matrix.itemsize
    pointers = (_DOUBLE_P * cols)()
    for i, offset in enumerate(column_offsets(rows, cols).tolist()):
        pointers[i] = ctypes.cast(ctypes.c_void_p(base + offset * itemsize), _DOUBLE_P)
    return ColumnPointers(pointers=pointers, rows=rows, owner=matrix)


def from_pointer_columns(
    columns: ColumnPointers,
    rows: int,
    cols: int,
    out: np.ndarray | None = None,
) -> np.ndarray:
    """列ポインタ配列の指す内容を列順のまま行列へコピーする。O(rows * cols)。

    Args:
        columns: ``to_pointer_columns`` が返した（エンジンが書き込み済みの）列ポインタ。
        rows: 各列の要素数。
        cols: 列数。
        out: 書き込み先。省略時は新しい列優先行列を確保する。

    Returns:
        shape (rows, cols) の行列。

    """
    result = out if out is not None else allocate_columns(rows, cols)
    if rows == 0 or cols == 0:
        return result

    if len(columns) != cols:
        raise ShapeMismatchError("column pointers", cols, len(columns))
    if result.shape != (rows, cols):
        raise ShapeMismatchError("out.shape", (rows, cols), result.shape)

    for i in range(cols):
        result[:, i] = np.ctypeslib.as_array(columns.pointers[i], shape=(rows,))
    return result
