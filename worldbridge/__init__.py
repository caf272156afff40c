from typing import TYPE_CHECKING

from .config import AnalysisConfig, load_config, save_effective_config
from .engine import NumericEngine, default_engine
from .exceptions import ConfigurationError, NumericEngineError, ShapeMismatchError, WorldBridgeError
from .interp import interp1
from .marshal import ColumnPointers, from_pointer_columns, to_pointer_columns
from .options import AperiodicityOptions, F0Options, SpectralEnvelopeOptions
from .pipeline import WorldPipeline
from .sizing import fft_size, frame_count, frequency_bin_count
from .types import AperiodicityMatrix, F0Source, F0Track, SpectralMatrix, WorldParameters

if TYPE_CHECKING:
    from .pyworld_engine import PyWorldEngine

__all__ = [
    "AnalysisConfig",
    "AperiodicityMatrix",
    "AperiodicityOptions",
    "ColumnPointers",
    "ConfigurationError",
    "F0Options",
    "F0Source",
    "F0Track",
    "NumericEngine",
    "NumericEngineError",
    "PyWorldEngine",
    "ShapeMismatchError",
    "SpectralEnvelopeOptions",
    "SpectralMatrix",
    "WorldBridgeError",
    "WorldParameters",
    "WorldPipeline",
    "default_engine",
    "fft_size",
    "frame_count",
    "frequency_bin_count",
    "from_pointer_columns",
    "interp1",
    "load_config",
    "save_effective_config",
    "to_pointer_columns",
]


def __getattr__(name: str):
    if name == "PyWorldEngine":
        from .pyworld_engine import PyWorldEngine

        return PyWorldEngine
    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
