"""数値エンジンの呼び出し規約。

出力バッファはすべて呼び出し側が確保・所有し、エンジンはそこへ書き込むだけ。
引数の順序は規約の一部であり、実装側で変更してはならない。

エンジンは複数スレッドからの同時呼び出しに耐えることを前提とする
（worldbridge 側ではロックを取らない）。
"""

from typing import TYPE_CHECKING, Protocol

import numpy as np

if TYPE_CHECKING:
    from worldbridge.marshal import ColumnPointers
    from worldbridge.options import AperiodicityOptions, F0Options, SpectralEnvelopeOptions


class NumericEngine(Protocol):
    def frame_count_for(self, sample_rate: int, signal_length: int, frame_period_ms: float) -> int: ...

    def fft_size_for(self, sample_rate: int) -> int: ...

    def estimate_f0(
        self,
        signal: np.ndarray,
        signal_length: int,
        sample_rate: int,
        options: "F0Options",
        time_axis: np.ndarray,
        f0: np.ndarray,
    ) -> None: ...

    def refine_f0(
        self,
        signal: np.ndarray,
        signal_length: int,
        sample_rate: int,
        time_axis: np.ndarray,
        f0: np.ndarray,
        f0_length: int,
        refined_f0: np.ndarray,
    ) -> None: ...

    def estimate_spectral_envelope(
        self,
        signal: np.ndarray,
        signal_length: int,
        sample_rate: int,
        time_axis: np.ndarray,
        f0: np.ndarray,
        f0_length: int,
        options: "SpectralEnvelopeOptions",
        spectrogram: "ColumnPointers",
    ) -> None: ...

    def estimate_aperiodicity(
        self,
        signal: np.ndarray,
        signal_length: int,
        sample_rate: int,
        time_axis: np.ndarray,
        f0: np.ndarray,
        f0_length: int,
        fft_size: int,
        options: "AperiodicityOptions",
        aperiodicity: "ColumnPointers",
    ) -> None: ...

    def synthesize(
        self,
        f0: np.ndarray,
        f0_length: int,
        spectrogram: "ColumnPointers",
        aperiodicity: "ColumnPointers",
        fft_size: int,
        frame_period_ms: float,
        sample_rate: int,
        output_length: int,
        output: np.ndarray,
    ) -> None: ...


def default_engine() -> NumericEngine:
    """pyworld ベースのエンジンを返す。pyworld はここで初めて import される。"""
    from worldbridge.pyworld_engine import PyWorldEngine

    return PyWorldEngine()
