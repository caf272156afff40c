"""パイプラインを流れるデータの型定義。

F0Source, F0Track, SpectralMatrix, AperiodicityMatrix, WorldParameters を提供する。
"""

from dataclasses import dataclass
from enum import StrEnum

import numpy as np

from worldbridge.exceptions import ShapeMismatchError


def _frozen(values: np.ndarray) -> np.ndarray:
    values.setflags(write=False)
    return values


class F0Source(StrEnum):
    """後段に渡すF0系列の出どころ。"""

    RAW = "raw"
    REFINED = "refined"


@dataclass(frozen=True, slots=True)
class F0Track:
    """フレームごとの (時刻, F0) 系列。

    ``f0`` と ``time_axis`` は同じ長さでなければならない。この不変条件は
    生成時ではなく、各ステージへの受け渡し時に検査する。
    """

    f0: np.ndarray
    time_axis: np.ndarray
    source: F0Source = F0Source.RAW

    def __len__(self) -> int:
        return int(self.f0.shape[0])

    @property
    def is_consistent(self) -> bool:
        return self.f0.ndim == 1 and self.time_axis.ndim == 1 and self.f0.shape == self.time_axis.shape

    @classmethod
    def empty(cls, source: F0Source = F0Source.RAW) -> "F0Track":
        return cls(
            f0=_frozen(np.zeros(0, dtype=np.float64)),
            time_axis=_frozen(np.zeros(0, dtype=np.float64)),
            source=source,
        )


@dataclass(frozen=True, slots=True)
class FrequencyMatrix:
    """shape (周波数ビン数, フレーム数) の非負実数行列。

    値は列優先の読み取り専用配列として保持する。
    ``rows == fft_size // 2 + 1`` を満たさなければならない。
    """

    values: np.ndarray
    fft_size: int

    def __post_init__(self) -> None:
        values = np.asarray(self.values, dtype=np.float64)
        if values.ndim != 2:
            raise ShapeMismatchError(f"{type(self).__name__}.ndim", 2, values.ndim)
        expected_rows = self.fft_size // 2 + 1
        if values.shape[0] != expected_rows:
            raise ShapeMismatchError(f"{type(self).__name__}.rows", expected_rows, values.shape[0])
        if not np.all(np.isfinite(values)):
            msg = f"{type(self).__name__} values must be finite"
            raise ValueError(msg)
        if np.any(values < 0.0):
            msg = f"{type(self).__name__} values must be non-negative, got min {float(values.min())!r}"
            raise ValueError(msg)
        if not values.flags.f_contiguous or values.flags.writeable:
            values = np.array(values, dtype=np.float64, order="F", copy=True)
        object.__setattr__(self, "values", _frozen(values))

    @property
    def rows(self) -> int:
        return int(self.values.shape[0])

    @property
    def cols(self) -> int:
        return int(self.values.shape[1])

    @property
    def shape(self) -> tuple[int, int]:
        return self.rows, self.cols

    def to_frames(self) -> np.ndarray:
        """フレーム優先 (frames, bins) の C 連続配列を返す（pyworld の配置）。"""
        return np.ascontiguousarray(self.values.T)

    @classmethod
    def from_frames(cls, frames: np.ndarray, fft_size: int):
        """フレーム優先 (frames, bins) の配列から行列を作る。"""
        arr = np.asarray(frames, dtype=np.float64)
        if arr.ndim != 2:
            raise ShapeMismatchError(f"{cls.__name__}.ndim", 2, arr.ndim)
        return cls(values=np.asfortranarray(arr.T), fft_size=fft_size)


@dataclass(frozen=True, slots=True)
class SpectralMatrix(FrequencyMatrix):
    """スペクトル包絡。"""


@dataclass(frozen=True, slots=True)
class AperiodicityMatrix(FrequencyMatrix):
    """非周期性指標。"""


@dataclass(frozen=True, slots=True)
class WorldParameters:
    """1回の解析で得られたパラメータ一式。

    行列は必ずそれを計算した ``track`` と組で扱う。
    """

    track: F0Track
    spectral: SpectralMatrix
    aperiodicity: AperiodicityMatrix
    sample_rate: int
    frame_period_ms: float
    signal_length: int
