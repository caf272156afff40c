"""解析ステージごとのオプション値オブジェクト。

いずれも生成時に検証される不変オブジェクトで、生成後に変更する経路はない。
デフォルト値は 44.1 kHz の入力音声を前提とする
（``constants.DEFAULT_SAMPLE_RATE``）。
"""

import math
import numbers
from dataclasses import asdict, dataclass, fields
from typing import Any

from worldbridge.constants import (
    DEFAULT_ALLOWED_RANGE,
    DEFAULT_APERIODICITY_RESERVED,
    DEFAULT_CHANNELS_PER_OCTAVE,
    DEFAULT_F0_CEIL,
    DEFAULT_F0_FLOOR,
    DEFAULT_FRAME_PERIOD_MS,
    DEFAULT_Q1,
    DEFAULT_SPEED_FACTOR,
    F0_OPTION_NAMES,
    SPEED_FACTOR_RANGE,
)
from worldbridge.exceptions import ConfigurationError


def _require_real(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigurationError(name, "a real number", value)
    if not math.isfinite(value):
        raise ConfigurationError(name, "finite", value)
    return float(value)


def _from_payload(cls: type, payload: dict[str, Any] | None, section: str) -> Any:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ConfigurationError(section, "a mapping", payload)
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ConfigurationError(f"{section}.{unknown[0]}", f"one of {sorted(known)}", unknown[0])
    return cls(**payload)


@dataclass(frozen=True, slots=True)
class F0Options:
    """F0推定 (DIO) のオプション。

    Attributes:
        f0_floor: 探索するF0の下限 [Hz]。``0 < f0_floor < f0_ceil``。
        f0_ceil: 探索するF0の上限 [Hz]。
        channels_per_octave: 1オクターブあたりの候補チャンネル数。``> 0``。
        frame_period_ms: フレーム周期 [ms]。``> 0``。
        speed_factor: 内部ダウンサンプリング係数。整数で ``1..12``。
        allowed_range: 候補F0の許容揺らぎ幅。``>= 0``。

    """

    f0_floor: float = DEFAULT_F0_FLOOR
    f0_ceil: float = DEFAULT_F0_CEIL
    channels_per_octave: float = DEFAULT_CHANNELS_PER_OCTAVE
    frame_period_ms: float = DEFAULT_FRAME_PERIOD_MS
    speed_factor: int = DEFAULT_SPEED_FACTOR
    allowed_range: float = DEFAULT_ALLOWED_RANGE

    def __post_init__(self) -> None:
        for name in F0_OPTION_NAMES:
            if name != "speed_factor":
                _require_real(name, getattr(self, name))

        if self.f0_floor <= 0.0:
            raise ConfigurationError("f0_floor", "> 0", self.f0_floor)
        if self.f0_floor >= self.f0_ceil:
            raise ConfigurationError("f0_floor", f"< f0_ceil ({self.f0_ceil})", self.f0_floor)
        if self.channels_per_octave <= 0.0:
            raise ConfigurationError("channels_per_octave", "> 0", self.channels_per_octave)
        if self.frame_period_ms <= 0.0:
            raise ConfigurationError("frame_period_ms", "> 0", self.frame_period_ms)

        lo, hi = SPEED_FACTOR_RANGE
        if isinstance(self.speed_factor, bool) or not isinstance(self.speed_factor, numbers.Integral):
            raise ConfigurationError("speed_factor", "an integer", self.speed_factor)
        if not (lo <= self.speed_factor <= hi):
            raise ConfigurationError("speed_factor", f"in [{lo}, {hi}]", self.speed_factor)

        if self.allowed_range < 0.0:
            raise ConfigurationError("allowed_range", ">= 0", self.allowed_range)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "F0Options":
        return _from_payload(cls, payload, "f0")


@dataclass(frozen=True, slots=True)
class SpectralEnvelopeOptions:
    """スペクトル包絡推定 (CheapTrick) のオプション。

    ``q1`` はリフタリングの平滑化係数。有限値であること以外に制約はない。
    """

    q1: float = DEFAULT_Q1

    def __post_init__(self) -> None:
        _require_real("q1", self.q1)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "SpectralEnvelopeOptions":
        return _from_payload(cls, payload, "spectral_envelope")


@dataclass(frozen=True, slots=True)
class AperiodicityOptions:
    """非周期性指標推定 (D4C) のオプション。

    ``reserved`` は数値エンジンの呼び出し規約を保つための予約値で、
    現状どのステージでも解釈しない。値はそのままエンジンへ渡す。
    """

    reserved: float = DEFAULT_APERIODICITY_RESERVED

    def __post_init__(self) -> None:
        if isinstance(self.reserved, bool) or not isinstance(self.reserved, numbers.Real):
            raise ConfigurationError("reserved", "a real number", self.reserved)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "AperiodicityOptions":
        return _from_payload(cls, payload, "aperiodicity")
