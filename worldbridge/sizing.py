"""各ステージの出力バッファ長の導出。

計算そのものは数値エンジンの公開関数に委ねる。結果はキャッシュしない。
"""

import math
import numbers
from typing import Any

from worldbridge.engine import NumericEngine, default_engine
from worldbridge.exceptions import ConfigurationError, NumericEngineError


def _is_integer(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def require_sample_rate(sample_rate: Any) -> int:
    if not _is_integer(sample_rate) or sample_rate <= 0:
        raise ConfigurationError("sample_rate", "a positive integer", sample_rate)
    return int(sample_rate)


def require_frame_period(frame_period_ms: Any) -> float:
    if (
        isinstance(frame_period_ms, bool)
        or not isinstance(frame_period_ms, numbers.Real)
        or not math.isfinite(frame_period_ms)
        or frame_period_ms <= 0
    ):
        raise ConfigurationError("frame_period_ms", "a positive finite number", frame_period_ms)
    return float(frame_period_ms)


def _require_count(stage: str, value: Any) -> int:
    if not _is_integer(value) or value < 0:
        raise NumericEngineError(stage, f"expected a non-negative integer, got {value!r}")
    return int(value)


def frame_count(
    sample_rate: int,
    signal_length: int,
    frame_period_ms: float,
    *,
    engine: NumericEngine | None = None,
) -> int:
    """解析フレーム数。F0系列と時間軸はちょうどこの長さで確保する。

    長さ0の信号は0フレームとし、エンジンには問い合わせない。
    """
    fs = require_sample_rate(sample_rate)
    period = require_frame_period(frame_period_ms)
    if not _is_integer(signal_length) or signal_length < 0:
        raise ConfigurationError("signal_length", "a non-negative integer", signal_length)
    if signal_length == 0:
        return 0

    engine = engine or default_engine()
    return _require_count("frame_count_for", engine.frame_count_for(fs, int(signal_length), period))


def fft_size(sample_rate: int, *, engine: NumericEngine | None = None) -> int:
    """スペクトル包絡・非周期性指標ステージの FFT 長。"""
    fs = require_sample_rate(sample_rate)
    engine = engine or default_engine()
    size = _require_count("fft_size_for", engine.fft_size_for(fs))
    if size == 0:
        raise NumericEngineError("fft_size_for", "fft_size must be positive, got 0")
    return size


def frequency_bin_count(sample_rate: int, *, engine: NumericEngine | None = None) -> int:
    """スペクトル行列・非周期性行列の行数 (``fft_size // 2 + 1``)。"""
    return fft_size(sample_rate, engine=engine) // 2 + 1
