import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from worldbridge.constants import DEFAULT_SAMPLE_RATE
from worldbridge.exceptions import ConfigurationError
from worldbridge.options import AperiodicityOptions, F0Options, SpectralEnvelopeOptions
from worldbridge.sizing import require_sample_rate
from worldbridge.types import F0Source

logger = logging.getLogger(__name__)

_SECTIONS = ("sample_rate", "f0_source", "f0", "spectral_envelope", "aperiodicity")


def require_f0_source(value: Any) -> F0Source:
    try:
        return F0Source(value)
    except ValueError:
        raise ConfigurationError(
            "f0_source",
            f"one of {[s.value for s in F0Source]}",
            value,
        ) from None


@dataclass(slots=True)
class AnalysisConfig:
    """WORLD 解析パイプラインの設定。

    ``sample_rate`` は各オプションが想定する入力のサンプリング周波数。
    実際の信号と異なっても処理は続行し、警告ログのみ出す。
    """

    sample_rate: int = DEFAULT_SAMPLE_RATE
    f0_source: F0Source = F0Source.REFINED
    f0: F0Options = field(default_factory=F0Options)
    spectral_envelope: SpectralEnvelopeOptions = field(default_factory=SpectralEnvelopeOptions)
    aperiodicity: AperiodicityOptions = field(default_factory=AperiodicityOptions)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """各フィールドを検査し、``f0_source`` を F0Source に正規化する。

        インスタンスは変更可能なので、パイプラインは実行前にも再度呼び出す。
        """
        self.sample_rate = require_sample_rate(self.sample_rate)
        self.f0_source = require_f0_source(self.f0_source)
        sections = (
            ("f0", F0Options),
            ("spectral_envelope", SpectralEnvelopeOptions),
            ("aperiodicity", AperiodicityOptions),
        )
        for name, section_type in sections:
            value = getattr(self, name)
            if not isinstance(value, section_type):
                raise ConfigurationError(name, f"a {section_type.__name__}", value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sample_rate": self.sample_rate,
            "f0_source": str(self.f0_source),
            "f0": self.f0.to_dict(),
            "spectral_envelope": self.spectral_envelope.to_dict(),
            "aperiodicity": self.aperiodicity.to_dict(),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "AnalysisConfig":
        unknown = sorted(set(raw) - set(_SECTIONS))
        if unknown:
            raise ConfigurationError(unknown[0], f"one of {list(_SECTIONS)}", unknown[0])

        return cls(
            sample_rate=raw.get("sample_rate", DEFAULT_SAMPLE_RATE),
            f0_source=raw.get("f0_source", F0Source.REFINED),
            f0=F0Options.from_dict(raw.get("f0")),
            spectral_envelope=SpectralEnvelopeOptions.from_dict(raw.get("spectral_envelope")),
            aperiodicity=AperiodicityOptions.from_dict(raw.get("aperiodicity")),
        )


def load_config(config_path: str | Path) -> AnalysisConfig:
    """YAML設定ファイルを読み込む。"""
    path = Path(config_path)
    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("r", encoding="utf-8") as file:
        raw = yaml.safe_load(file) or {}

    if not isinstance(raw, dict):
        raise ConfigurationError("<root>", "a mapping", type(raw).__name__)

    config = AnalysisConfig.from_dict(raw)
    logger.debug("Loaded analysis config from %s", path)
    return config


def save_effective_config(config: AnalysisConfig, output_path: str | Path) -> None:
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as file:
        yaml.safe_dump(config.to_dict(), file, sort_keys=False, allow_unicode=True)
