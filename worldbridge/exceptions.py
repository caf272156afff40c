"""worldbridge の例外階層。"""

from typing import Any


class WorldBridgeError(Exception):
    """worldbridge 関連エラーの基底クラス。"""


class ConfigurationError(WorldBridgeError, ValueError):
    """解析オプション等のスカラー設定値が許容範囲外。

    数値エンジン呼び出し前に検出される。入力を修正すれば再試行できる。
    """

    def __init__(self, field: str, constraint: str, value: Any) -> None:
        self.field = field
        self.constraint = constraint
        self.value = value
        super().__init__(f"{field} must be {constraint}, got {value!r}")


class ShapeMismatchError(WorldBridgeError, ValueError):
    """ステージ間で受け渡すバッファ長・行列形状の不整合。"""

    def __init__(self, field: str, expected: Any, actual: Any) -> None:
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(f"{field}: expected {expected}, got {actual}")


class NumericEngineError(WorldBridgeError, RuntimeError):
    """数値エンジン呼び出しが回復不能な失敗を報告した。"""

    def __init__(self, stage: str, detail: str) -> None:
        self.stage = stage
        self.detail = detail
        super().__init__(f"numeric engine failed in {stage}: {detail}")
