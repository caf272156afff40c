from __future__ import annotations

import unittest

import numpy as np
import pytest

from worldbridge.config import AnalysisConfig
from worldbridge.exceptions import ConfigurationError, NumericEngineError, ShapeMismatchError
from worldbridge.marshal import ColumnPointers
from worldbridge.options import AperiodicityOptions, F0Options
from worldbridge.pipeline import WorldPipeline
from worldbridge.types import AperiodicityMatrix, F0Source, F0Track, SpectralMatrix

_FFT_SIZE = 16
_BINS = _FFT_SIZE // 2 + 1


class _RecordingEngine:
    """呼び出しを記録し、列番号などの決定的な値を書き込むフェイク。"""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.aperiodicity_options: AperiodicityOptions | None = None
        self.aperiodicity_fft_size: int | None = None

    def frame_count_for(self, sample_rate: int, signal_length: int, frame_period_ms: float) -> int:
        return int(1000.0 * signal_length / sample_rate / frame_period_ms) + 1

    def fft_size_for(self, sample_rate: int) -> int:
        del sample_rate
        return _FFT_SIZE

    def estimate_f0(self, signal, signal_length, sample_rate, options, time_axis, f0) -> None:
        del signal, signal_length, sample_rate
        self.calls.append("estimate_f0")
        time_axis[:] = np.arange(time_axis.size) * options.frame_period_ms / 1000.0
        f0[:] = 100.0

    def refine_f0(self, signal, signal_length, sample_rate, time_axis, f0, f0_length, refined_f0) -> None:
        del signal, signal_length, sample_rate, time_axis
        self.calls.append("refine_f0")
        refined_f0[:f0_length] = f0[:f0_length] + 1.0

    def estimate_spectral_envelope(
        self,
        signal,
        signal_length,
        sample_rate,
        time_axis,
        f0,
        f0_length,
        options,
        spectrogram: ColumnPointers,
    ) -> None:
        del signal, signal_length, sample_rate, time_axis, f0, options
        self.calls.append("estimate_spectral_envelope")
        assert len(spectrogram) == f0_length
        for i in range(f0_length):
            spectrogram.column(i)[:] = float(i + 1)

    def estimate_aperiodicity(
        self,
        signal,
        signal_length,
        sample_rate,
        time_axis,
        f0,
        f0_length,
        fft_size,
        options,
        aperiodicity: ColumnPointers,
    ) -> None:
        del signal, signal_length, sample_rate, time_axis, f0
        self.calls.append("estimate_aperiodicity")
        self.aperiodicity_options = options
        self.aperiodicity_fft_size = fft_size
        for i in range(f0_length):
            aperiodicity.column(i)[:] = 0.5

    def synthesize(
        self,
        f0,
        f0_length,
        spectrogram,
        aperiodicity,
        fft_size,
        frame_period_ms,
        sample_rate,
        output_length,
        output,
    ) -> None:
        del f0, spectrogram, aperiodicity, fft_size, frame_period_ms, sample_rate
        self.calls.append("synthesize")
        assert output.size == output_length
        output[:] = float(f0_length)


class _FailingEngine(_RecordingEngine):
    def estimate_f0(self, signal, signal_length, sample_rate, options, time_axis, f0) -> None:
        msg = "segmentation fault in DIO"
        raise RuntimeError(msg)


class _NegativeSpectrumEngine(_RecordingEngine):
    def estimate_spectral_envelope(
        self,
        signal,
        signal_length,
        sample_rate,
        time_axis,
        f0,
        f0_length,
        options,
        spectrogram: ColumnPointers,
    ) -> None:
        del signal, signal_length, sample_rate, time_axis, f0, options
        self.calls.append("estimate_spectral_envelope")
        for i in range(f0_length):
            spectrogram.column(i)[:] = -1.0


def _track(n_frames: int, source: F0Source = F0Source.RAW) -> F0Track:
    return F0Track(
        f0=np.full(n_frames, 120.0),
        time_axis=np.arange(n_frames, dtype=np.float64) * 0.005,
        source=source,
    )


def _spectral(n_frames: int) -> SpectralMatrix:
    return SpectralMatrix(values=np.ones((_BINS, n_frames), order="F"), fft_size=_FFT_SIZE)


def _aperiodicity(n_frames: int) -> AperiodicityMatrix:
    return AperiodicityMatrix(values=np.full((_BINS, n_frames), 0.5, order="F"), fft_size=_FFT_SIZE)


class TestWorldPipelineStages(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = _RecordingEngine()
        self.pipeline = WorldPipeline(self.engine)
        self.signal = np.zeros(1600, dtype=np.float64)

    def test_estimate_f0_allocates_frame_count(self) -> None:
        track = self.pipeline.estimate_f0(self.signal, 16000, F0Options(frame_period_ms=5.0))
        assert len(track) == 21
        assert track.time_axis.shape == (21,)
        assert track.source == F0Source.RAW
        assert not track.f0.flags.writeable

    def test_refine_f0_keeps_time_axis(self) -> None:
        raw = self.pipeline.estimate_f0(self.signal, 16000)
        refined = self.pipeline.refine_f0(self.signal, 16000, raw)
        assert refined.source == F0Source.REFINED
        np.testing.assert_array_equal(refined.time_axis, raw.time_axis)
        np.testing.assert_array_equal(refined.f0, raw.f0 + 1.0)

    def test_refine_f0_rejects_inconsistent_track(self) -> None:
        broken = F0Track(f0=np.zeros(5), time_axis=np.zeros(4))
        with pytest.raises(ShapeMismatchError) as excinfo:
            self.pipeline.refine_f0(self.signal, 16000, broken)
        assert excinfo.value.expected == (5,)
        assert excinfo.value.actual == (4,)
        assert self.engine.calls == []

    def test_spectral_envelope_shape_and_column_order(self) -> None:
        track = self.pipeline.estimate_f0(self.signal, 16000)
        spectral = self.pipeline.estimate_spectral_envelope(self.signal, 16000, track)

        assert spectral.rows == _BINS
        assert spectral.cols == len(track)
        assert spectral.fft_size == _FFT_SIZE
        np.testing.assert_array_equal(spectral.values[0], np.arange(1, len(track) + 1))
        np.testing.assert_array_equal(spectral.to_frames()[:, 0], np.arange(1, len(track) + 1))

    def test_aperiodicity_receives_options_and_fft_size_unchanged(self) -> None:
        track = self.pipeline.estimate_f0(self.signal, 16000)
        opts = AperiodicityOptions(reserved=7.0)
        ap = self.pipeline.estimate_aperiodicity(self.signal, 16000, track, opts, fft_size=_FFT_SIZE)

        assert self.engine.aperiodicity_options is opts
        assert self.engine.aperiodicity_fft_size == _FFT_SIZE
        assert ap.shape == (_BINS, len(track))

    def test_aperiodicity_rejects_foreign_fft_size(self) -> None:
        track = self.pipeline.estimate_f0(self.signal, 16000)
        with pytest.raises(ShapeMismatchError):
            self.pipeline.estimate_aperiodicity(self.signal, 16000, track, fft_size=_FFT_SIZE * 2)
        assert "estimate_aperiodicity" not in self.engine.calls

    def test_synthesize_fills_exact_output_length(self) -> None:
        out = self.pipeline.synthesize(_track(10), _spectral(10), _aperiodicity(10), 5.0, 16000, 777)
        assert out.shape == (777,)
        assert np.all(out == 10.0)

    def test_synthesize_rejects_column_mismatch_without_engine_call(self) -> None:
        with pytest.raises(ShapeMismatchError) as excinfo:
            self.pipeline.synthesize(_track(10), _spectral(10), _aperiodicity(9), 5.0, 16000, 100)
        assert excinfo.value.field == "aperiodicity.cols"
        assert excinfo.value.expected == 10
        assert excinfo.value.actual == 9
        assert "synthesize" not in self.engine.calls

    def test_synthesize_rejects_track_from_another_run(self) -> None:
        with pytest.raises(ShapeMismatchError):
            self.pipeline.synthesize(_track(12), _spectral(10), _aperiodicity(10), 5.0, 16000, 100)
        assert self.engine.calls == []

    def test_synthesize_rejects_bins_for_another_sample_rate(self) -> None:
        spectral = SpectralMatrix(values=np.ones((5, 10), order="F"), fft_size=8)
        with pytest.raises(ShapeMismatchError) as excinfo:
            self.pipeline.synthesize(_track(10), spectral, _aperiodicity(10), 5.0, 16000, 100)
        assert excinfo.value.field == "spectral.rows"

    def test_synthesize_rejects_negative_output_length(self) -> None:
        with pytest.raises(ConfigurationError):
            self.pipeline.synthesize(_track(3), _spectral(3), _aperiodicity(3), 5.0, 16000, -1)

    def test_invalid_sample_rate_fails_before_engine(self) -> None:
        with pytest.raises(ConfigurationError) as excinfo:
            self.pipeline.estimate_f0(self.signal, 0)
        assert excinfo.value.field == "sample_rate"
        assert self.engine.calls == []

    def test_two_dimensional_signal_is_rejected(self) -> None:
        with pytest.raises(ShapeMismatchError):
            self.pipeline.estimate_f0(np.zeros((100, 2)), 16000)

    def test_engine_failure_is_surfaced_as_numeric_engine_error(self) -> None:
        pipeline = WorldPipeline(_FailingEngine())
        with pytest.raises(NumericEngineError) as excinfo:
            pipeline.estimate_f0(self.signal, 16000)
        assert excinfo.value.stage == "estimate_f0"
        assert "segmentation fault in DIO" in str(excinfo.value)
        assert isinstance(excinfo.value.__cause__, RuntimeError)

    def test_negative_engine_output_is_surfaced_as_numeric_engine_error(self) -> None:
        pipeline = WorldPipeline(_NegativeSpectrumEngine())
        track = pipeline.estimate_f0(self.signal, 16000)
        with pytest.raises(NumericEngineError) as excinfo:
            pipeline.estimate_spectral_envelope(self.signal, 16000, track)
        assert excinfo.value.stage == "estimate_spectral_envelope"


class TestWorldPipelineEmptyInput(unittest.TestCase):
    def test_empty_signal_flows_through_without_engine_calls(self) -> None:
        engine = _RecordingEngine()
        pipeline = WorldPipeline(engine)
        empty = np.zeros(0, dtype=np.float64)

        track = pipeline.estimate_f0(empty, 16000)
        refined = pipeline.refine_f0(empty, 16000, track)
        spectral = pipeline.estimate_spectral_envelope(empty, 16000, refined)
        ap = pipeline.estimate_aperiodicity(empty, 16000, refined)
        out = pipeline.synthesize(refined, spectral, ap, 5.0, 16000, 0)

        assert len(track) == 0
        assert len(refined) == 0
        assert spectral.shape == (_BINS, 0)
        assert ap.shape == (_BINS, 0)
        assert out.shape == (0,)
        assert engine.calls == []

    def test_empty_track_synthesizes_silence_of_requested_length(self) -> None:
        engine = _RecordingEngine()
        pipeline = WorldPipeline(engine)
        out = pipeline.synthesize(_track(0), _spectral(0), _aperiodicity(0), 5.0, 16000, 50)
        assert out.shape == (50,)
        assert np.all(out == 0.0)
        assert engine.calls == []


class TestWorldPipelineAnalyze(unittest.TestCase):
    def test_refined_source_runs_refinement(self) -> None:
        engine = _RecordingEngine()
        params = WorldPipeline(engine).analyze(np.zeros(800), 16000, AnalysisConfig(sample_rate=16000))

        assert engine.calls == [
            "estimate_f0",
            "refine_f0",
            "estimate_spectral_envelope",
            "estimate_aperiodicity",
        ]
        assert params.track.source == F0Source.REFINED
        assert params.spectral.cols == params.aperiodicity.cols == len(params.track)
        assert params.signal_length == 800

    def test_raw_source_skips_refinement(self) -> None:
        engine = _RecordingEngine()
        config = AnalysisConfig(sample_rate=16000, f0_source=F0Source.RAW)
        params = WorldPipeline(engine).analyze(np.zeros(800), 16000, config)

        assert "refine_f0" not in engine.calls
        assert params.track.source == F0Source.RAW

    def test_resynthesize_defaults_to_signal_length(self) -> None:
        engine = _RecordingEngine()
        pipeline = WorldPipeline(engine)
        params = pipeline.analyze(np.zeros(800), 16000, AnalysisConfig(sample_rate=16000))
        out = pipeline.resynthesize(params)
        assert out.shape == (800,)
        assert engine.calls[-1] == "synthesize"

    def test_sample_rate_mismatch_is_logged(self) -> None:
        pipeline = WorldPipeline(_RecordingEngine())
        with self.assertLogs("worldbridge.pipeline", level="WARNING") as logs:
            pipeline.analyze(np.zeros(800), 16000, AnalysisConfig())
        assert any("44100" in line for line in logs.output)

    def test_source_changed_after_construction_fails_before_engine(self) -> None:
        engine = _RecordingEngine()
        config = AnalysisConfig(sample_rate=16000)
        config.f0_source = "smoothed"
        with pytest.raises(ConfigurationError) as excinfo:
            WorldPipeline(engine).analyze(np.zeros(800), 16000, config)
        assert excinfo.value.field == "f0_source"
        assert engine.calls == []

    def test_source_given_as_string_is_accepted(self) -> None:
        engine = _RecordingEngine()
        config = AnalysisConfig(sample_rate=16000)
        config.f0_source = "raw"
        params = WorldPipeline(engine).analyze(np.zeros(800), 16000, config)
        assert params.track.source == F0Source.RAW
        assert "refine_f0" not in engine.calls


if __name__ == "__main__":
    unittest.main()
