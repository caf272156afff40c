"""WORLD 解析/再合成パイプライン。

信号 -> F0推定 -> (F0補正) -> スペクトル包絡 -> 非周期性指標 -> 合成、の順に
数値エンジンを呼び出し、ステージ間の形状整合性を受け渡しのたびに検査する。
各操作は入力だけで決まる純粋な変換で、内部状態を持たない。
"""

import logging
import numbers
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import numpy as np

from worldbridge.engine import NumericEngine, default_engine
from worldbridge.exceptions import ConfigurationError, NumericEngineError, ShapeMismatchError, WorldBridgeError
from worldbridge.marshal import allocate_columns, from_pointer_columns, to_pointer_columns
from worldbridge.options import AperiodicityOptions, F0Options, SpectralEnvelopeOptions
from worldbridge.sizing import fft_size as derive_fft_size
from worldbridge.sizing import frame_count, require_frame_period, require_sample_rate
from worldbridge.types import AperiodicityMatrix, F0Source, F0Track, SpectralMatrix, WorldParameters

if TYPE_CHECKING:
    from worldbridge.config import AnalysisConfig

logger = logging.getLogger(__name__)


def _as_signal(signal: Any) -> np.ndarray:
    wav = np.ascontiguousarray(signal, dtype=np.float64)
    if wav.ndim != 1:
        raise ShapeMismatchError("signal.ndim", 1, wav.ndim)
    return wav


def _require_track(track: F0Track) -> int:
    if not track.is_consistent:
        raise ShapeMismatchError("len(f0) == len(time_axis)", track.f0.shape, track.time_axis.shape)
    return len(track)


def _readonly(values: np.ndarray) -> np.ndarray:
    values.setflags(write=False)
    return values


class WorldPipeline:
    """数値エンジンの前後でバッファ確保・行列変換・形状検査を行うオーケストレータ。

    保持するのはエンジンへの参照だけなので、別々の信号に対しては
    複数スレッドから同じインスタンスを使ってよい。
    """

    def __init__(self, engine: NumericEngine | None = None) -> None:
        self._engine = engine or default_engine()

    @property
    def engine(self) -> NumericEngine:
        return self._engine

    def _invoke(self, stage: str, call: Callable[..., None], *args: Any) -> None:
        try:
            call(*args)
        except WorldBridgeError:
            raise
        except Exception as exc:
            raise NumericEngineError(stage, f"{type(exc).__name__}: {exc}") from exc

    # ------------------------------------------------------------------
    # 1. F0推定
    # ------------------------------------------------------------------

    def estimate_f0(
        self,
        signal: np.ndarray,
        sample_rate: int,
        options: F0Options | None = None,
    ) -> F0Track:
        """信号からF0系列と時間軸を推定する。"""
        opts = options or F0Options()
        wav = _as_signal(signal)
        fs = require_sample_rate(sample_rate)

        n_frames = frame_count(fs, wav.size, opts.frame_period_ms, engine=self._engine)
        if n_frames == 0:
            logger.debug("estimate_f0: empty signal, returning empty track")
            return F0Track.empty(F0Source.RAW)

        f0 = np.zeros(n_frames, dtype=np.float64)
        time_axis = np.zeros(n_frames, dtype=np.float64)
        self._invoke("estimate_f0", self._engine.estimate_f0, wav, wav.size, fs, opts, time_axis, f0)
        logger.debug("estimate_f0: %d frames (fs=%d, period=%.3f ms)", n_frames, fs, opts.frame_period_ms)
        return F0Track(f0=_readonly(f0), time_axis=_readonly(time_axis), source=F0Source.RAW)

    # ------------------------------------------------------------------
    # 2. F0補正（省略可能）
    # ------------------------------------------------------------------

    def refine_f0(self, signal: np.ndarray, sample_rate: int, track: F0Track) -> F0Track:
        """F0系列を補正する。時間軸は入力のものをそのまま引き継ぐ。"""
        wav = _as_signal(signal)
        fs = require_sample_rate(sample_rate)
        n_frames = _require_track(track)
        if n_frames == 0:
            logger.debug("refine_f0: empty track")
            return F0Track.empty(F0Source.REFINED)

        refined = np.zeros(n_frames, dtype=np.float64)
        self._invoke(
            "refine_f0",
            self._engine.refine_f0,
            wav,
            wav.size,
            fs,
            track.time_axis,
            track.f0,
            n_frames,
            refined,
        )
        logger.debug("refine_f0: %d frames", n_frames)
        return F0Track(f0=_readonly(refined), time_axis=track.time_axis, source=F0Source.REFINED)

    # ------------------------------------------------------------------
    # 3. スペクトル包絡 / 4. 非周期性指標
    # ------------------------------------------------------------------

    def _estimate_matrix(
        self,
        stage: str,
        call: Callable[..., None],
        wav: np.ndarray,
        fs: int,
        track: F0Track,
        fft_size: int,
        extra: tuple[Any, ...],
    ) -> np.ndarray:
        n_frames = _require_track(track)
        rows = fft_size // 2 + 1
        arena = allocate_columns(rows, n_frames)
        if n_frames == 0:
            logger.debug("%s: empty track, returning (%d, 0) matrix", stage, rows)
            return _readonly(arena)

        columns = to_pointer_columns(arena)
        self._invoke(stage, call, wav, wav.size, fs, track.time_axis, track.f0, n_frames, *extra, columns)
        values = from_pointer_columns(columns, rows, n_frames)
        if not np.all(np.isfinite(values)) or np.any(values < 0.0):
            raise NumericEngineError(stage, "engine wrote negative or non-finite values")
        logger.debug("%s: matrix %dx%d (fft_size=%d)", stage, rows, n_frames, fft_size)
        return _readonly(values)

    def estimate_spectral_envelope(
        self,
        signal: np.ndarray,
        sample_rate: int,
        track: F0Track,
        options: SpectralEnvelopeOptions | None = None,
    ) -> SpectralMatrix:
        """スペクトル包絡を推定する。shape は (周波数ビン数, len(track))。"""
        opts = options or SpectralEnvelopeOptions()
        wav = _as_signal(signal)
        fs = require_sample_rate(sample_rate)
        size = derive_fft_size(fs, engine=self._engine)

        values = self._estimate_matrix(
            "estimate_spectral_envelope",
            self._engine.estimate_spectral_envelope,
            wav,
            fs,
            track,
            size,
            (opts,),
        )
        return SpectralMatrix(values=values, fft_size=size)

    def estimate_aperiodicity(
        self,
        signal: np.ndarray,
        sample_rate: int,
        track: F0Track,
        options: AperiodicityOptions | None = None,
        *,
        fft_size: int | None = None,
    ) -> AperiodicityMatrix:
        """非周期性指標を推定する。

        ``fft_size`` にはスペクトル包絡ステージで使った FFT 長を渡せる。
        サンプリング周波数から導出した値と異なる場合は ShapeMismatchError。
        """
        opts = options or AperiodicityOptions()
        wav = _as_signal(signal)
        fs = require_sample_rate(sample_rate)
        size = derive_fft_size(fs, engine=self._engine)
        if fft_size is not None and fft_size != size:
            raise ShapeMismatchError("fft_size", size, fft_size)

        values = self._estimate_matrix(
            "estimate_aperiodicity",
            self._engine.estimate_aperiodicity,
            wav,
            fs,
            track,
            size,
            (size, opts),
        )
        return AperiodicityMatrix(values=values, fft_size=size)

    # ------------------------------------------------------------------
    # 5. 合成
    # ------------------------------------------------------------------

    def synthesize(
        self,
        track: F0Track,
        spectral: SpectralMatrix,
        aperiodicity: AperiodicityMatrix,
        frame_period_ms: float,
        sample_rate: int,
        output_length: int,
    ) -> np.ndarray:
        """F0系列と2つの行列から ``output_length`` サンプルの波形を合成する。

        形状の検査はすべて列ポインタ変換の前に行い、不整合があれば
        エンジンを呼ばずに ShapeMismatchError を送出する。
        """
        fs = require_sample_rate(sample_rate)
        period = require_frame_period(frame_period_ms)
        if isinstance(output_length, bool) or not isinstance(output_length, numbers.Integral) or output_length < 0:
            raise ConfigurationError("output_length", "a non-negative integer", output_length)
        output_length = int(output_length)

        n_frames = _require_track(track)
        if spectral.cols != n_frames:
            raise ShapeMismatchError("spectral.cols", n_frames, spectral.cols)
        if aperiodicity.cols != n_frames:
            raise ShapeMismatchError("aperiodicity.cols", n_frames, aperiodicity.cols)

        size = derive_fft_size(fs, engine=self._engine)
        expected_rows = size // 2 + 1
        for name, matrix in (("spectral", spectral), ("aperiodicity", aperiodicity)):
            if matrix.rows != expected_rows:
                raise ShapeMismatchError(f"{name}.rows", expected_rows, matrix.rows)

        output = np.zeros(output_length, dtype=np.float64)
        if n_frames == 0 or output_length == 0:
            logger.debug("synthesize: nothing to synthesize, returning %d zeros", output_length)
            return output

        self._invoke(
            "synthesize",
            self._engine.synthesize,
            track.f0,
            n_frames,
            to_pointer_columns(spectral.values),
            to_pointer_columns(aperiodicity.values),
            size,
            period,
            fs,
            output_length,
            output,
        )
        logger.debug("synthesize: %d frames -> %d samples", n_frames, output_length)
        return output

    # ------------------------------------------------------------------
    # 一括実行
    # ------------------------------------------------------------------

    def analyze(
        self,
        signal: np.ndarray,
        sample_rate: int,
        config: "AnalysisConfig | None" = None,
    ) -> WorldParameters:
        """F0推定から非周期性指標推定までを一括で実行する。

        F0補正を挟むかどうかは ``config.f0_source`` で選ぶ。設定はエンジンを
        呼ぶ前に検査し直すので、生成後に書き換えられた不正値でも何も実行しない。
        """
        if config is None:
            from worldbridge.config import AnalysisConfig

            config = AnalysisConfig()
        config.validate()

        wav = _as_signal(signal)
        fs = require_sample_rate(sample_rate)
        if fs != config.sample_rate:
            logger.warning(
                "Options are tuned for %d Hz input but the signal is %d Hz",
                config.sample_rate,
                fs,
            )

        raw = self.estimate_f0(wav, fs, config.f0)
        match config.f0_source:
            case F0Source.RAW:
                track = raw
            case F0Source.REFINED:
                track = self.refine_f0(wav, fs, raw)

        spectral = self.estimate_spectral_envelope(wav, fs, track, config.spectral_envelope)
        aperiodicity = self.estimate_aperiodicity(
            wav,
            fs,
            track,
            config.aperiodicity,
            fft_size=spectral.fft_size,
        )
        logger.info(
            "Analyzed %d samples at %d Hz: %d frames, %d bins (%s F0)",
            wav.size,
            fs,
            len(track),
            spectral.rows,
            track.source,
        )
        return WorldParameters(
            track=track,
            spectral=spectral,
            aperiodicity=aperiodicity,
            sample_rate=fs,
            frame_period_ms=config.f0.frame_period_ms,
            signal_length=int(wav.size),
        )

    def resynthesize(self, params: WorldParameters, output_length: int | None = None) -> np.ndarray:
        """``analyze`` の結果から波形を再合成する。長さの既定値は解析した信号長。"""
        return self.synthesize(
            params.track,
            params.spectral,
            params.aperiodicity,
            params.frame_period_ms,
            params.sample_rate,
            params.signal_length if output_length is None else output_length,
        )
