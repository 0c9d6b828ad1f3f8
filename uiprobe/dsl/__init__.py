# DSL モジュール
# ケイパビリティ記述子スキーマとバッテリー YAML パーサーを提供

from . import schema  # noqa: F401
from . import parser  # noqa: F401
