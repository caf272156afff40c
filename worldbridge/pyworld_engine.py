"""pyworld (WORLD vocoder) による数値エンジン実装。

pyworld は結果を新しい配列として返すため、ここで呼び出し側の確保した
バッファ・列ポインタへ書き戻す。状態を持たないのでスレッド間で共有できる。
"""

import logging
from typing import Any, cast

import numpy as np
import pyworld as pw

from worldbridge.exceptions import NumericEngineError
from worldbridge.marshal import ColumnPointers
from worldbridge.options import AperiodicityOptions, F0Options, SpectralEnvelopeOptions

logger = logging.getLogger(__name__)


def _as_input(values: np.ndarray) -> np.ndarray:
    # pyworld の型付き memoryview は書き込み可能な C 連続配列を要求する
    return np.require(values, dtype=np.float64, requirements=["C", "W"])


def _check_length(stage: str, field: str, expected: int, actual: int) -> None:
    if expected != actual:
        detail = f"{field} has {actual} elements, caller buffer holds {expected}"
        raise NumericEngineError(stage, detail)


def _write_columns(stage: str, frames: np.ndarray, columns: ColumnPointers) -> None:
    expected = (len(columns), columns.rows)
    if frames.shape != expected:
        detail = f"result shape {frames.shape} does not match caller matrix {expected}"
        raise NumericEngineError(stage, detail)
    for i in range(len(columns)):
        columns.column(i)[:] = frames[i]


def _read_columns(columns: ColumnPointers, count: int) -> np.ndarray:
    return np.ascontiguousarray(np.stack([columns.column(i) for i in range(count)]))


class PyWorldEngine:
    """DIO / StoneMask / CheapTrick / D4C / Synthesis を pyworld で実行するエンジン。"""

    def frame_count_for(self, sample_rate: int, signal_length: int, frame_period_ms: float) -> int:
        # pyworld は GetSamplesForDIO を公開していないため同じ式で求める
        return int(1000.0 * signal_length / sample_rate / frame_period_ms) + 1

    def fft_size_for(self, sample_rate: int) -> int:
        world = cast("Any", pw)
        return int(world.get_cheaptrick_fft_size(sample_rate))

    def estimate_f0(
        self,
        signal: np.ndarray,
        signal_length: int,
        sample_rate: int,
        options: F0Options,
        time_axis: np.ndarray,
        f0: np.ndarray,
    ) -> None:
        world = cast("Any", pw)
        f0_out, time_out = world.dio(
            _as_input(signal[:signal_length]),
            sample_rate,
            f0_floor=options.f0_floor,
            f0_ceil=options.f0_ceil,
            channels_in_octave=options.channels_per_octave,
            frame_period=options.frame_period_ms,
            speed=options.speed_factor,
            allowed_range=options.allowed_range,
        )
        _check_length("estimate_f0", "f0", f0.shape[0], f0_out.shape[0])
        _check_length("estimate_f0", "time_axis", time_axis.shape[0], time_out.shape[0])
        f0[:] = f0_out
        time_axis[:] = time_out

    def refine_f0(
        self,
        signal: np.ndarray,
        signal_length: int,
        sample_rate: int,
        time_axis: np.ndarray,
        f0: np.ndarray,
        f0_length: int,
        refined_f0: np.ndarray,
    ) -> None:
        world = cast("Any", pw)
        refined = world.stonemask(
            _as_input(signal[:signal_length]),
            _as_input(f0[:f0_length]),
            _as_input(time_axis[:f0_length]),
            sample_rate,
        )
        _check_length("refine_f0", "refined_f0", refined_f0.shape[0], refined.shape[0])
        refined_f0[:] = refined

    def estimate_spectral_envelope(
        self,
        signal: np.ndarray,
        signal_length: int,
        sample_rate: int,
        time_axis: np.ndarray,
        f0: np.ndarray,
        f0_length: int,
        options: SpectralEnvelopeOptions,
        spectrogram: ColumnPointers,
    ) -> None:
        world = cast("Any", pw)
        sp = world.cheaptrick(
            _as_input(signal[:signal_length]),
            _as_input(f0[:f0_length]),
            _as_input(time_axis[:f0_length]),
            sample_rate,
            q1=options.q1,
            fft_size=self.fft_size_for(sample_rate),
        )
        _write_columns("estimate_spectral_envelope", sp, spectrogram)

    def estimate_aperiodicity(
        self,
        signal: np.ndarray,
        signal_length: int,
        sample_rate: int,
        time_axis: np.ndarray,
        f0: np.ndarray,
        f0_length: int,
        fft_size: int,
        options: AperiodicityOptions,
        aperiodicity: ColumnPointers,
    ) -> None:
        del options  # 予約フィールドのみで pyworld に対応する引数はない
        world = cast("Any", pw)
        ap = world.d4c(
            _as_input(signal[:signal_length]),
            _as_input(f0[:f0_length]),
            _as_input(time_axis[:f0_length]),
            sample_rate,
            fft_size=fft_size,
        )
        _write_columns("estimate_aperiodicity", ap, aperiodicity)

    def synthesize(
        self,
        f0: np.ndarray,
        f0_length: int,
        spectrogram: ColumnPointers,
        aperiodicity: ColumnPointers,
        fft_size: int,
        frame_period_ms: float,
        sample_rate: int,
        output_length: int,
        output: np.ndarray,
    ) -> None:
        expected_rows = fft_size // 2 + 1
        for field, columns in (("spectrogram", spectrogram), ("aperiodicity", aperiodicity)):
            if columns.rows != expected_rows:
                detail = f"{field} has {columns.rows} bins, fft_size {fft_size} needs {expected_rows}"
                raise NumericEngineError("synthesize", detail)

        world = cast("Any", pw)
        wav = world.synthesize(
            _as_input(f0[:f0_length]),
            _read_columns(spectrogram, f0_length),
            _read_columns(aperiodicity, f0_length),
            sample_rate,
            frame_period=frame_period_ms,
        )
        copied = min(int(wav.shape[0]), output_length)
        if copied < output_length:
            logger.debug("synthesize: engine produced %d samples, zero-padding to %d", copied, output_length)
        output[:copied] = wav[:copied]
        output[copied:output_length] = 0.0
