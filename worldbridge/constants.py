# デフォルトの解析オプションは 44.1 kHz の入力音声を前提とする。
# 他のサンプリング周波数でも動作するが、各ステージで補正はしない。
DEFAULT_SAMPLE_RATE = 44100

# F0推定 (DIO)
DEFAULT_F0_FLOOR = 71.0
DEFAULT_F0_CEIL = 800.0
DEFAULT_CHANNELS_PER_OCTAVE = 2.0
DEFAULT_FRAME_PERIOD_MS = 5.0
DEFAULT_SPEED_FACTOR = 1
DEFAULT_ALLOWED_RANGE = 0.1
SPEED_FACTOR_RANGE: tuple[int, int] = (1, 12)

# スペクトル包絡推定 (CheapTrick)
DEFAULT_Q1 = -0.09

# 非周期性指標推定 (D4C)。予約フィールドで意味を持たない
DEFAULT_APERIODICITY_RESERVED = 0.0

F0_OPTION_NAMES: list[str] = [
    "f0_floor",
    "f0_ceil",
    "channels_per_octave",
    "frame_period_ms",
    "speed_factor",
    "allowed_range",
]
