"""
バッテリーパーサー — バッテリー YAML の読み込み・書き出し・検証

ruamel.yaml を使用して YAML ファイルを読み書きし、
Pydantic の Battery モデルとの相互変換を行う。
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .schema import Battery


# ---------------------------------------------------------------------------
# バリデーションエラー表現
# ---------------------------------------------------------------------------

@dataclass
class BatteryValidationError:
    """バッテリー YAML のスキーマ検証で検出されたエラー。

    Attributes:
        message: エラーメッセージ
        location: エラー箇所（フィールドパス等）
        line: YAML ファイル内の行番号（取得可能な場合）
    """

    message: str
    location: str = ""
    line: Optional[int] = None


# ---------------------------------------------------------------------------
# BatteryParser 本体
# ---------------------------------------------------------------------------

class BatteryParser:
    """バッテリー YAML の読み込み・書き出し・検証を担当するパーサー。"""

    def __init__(self) -> None:
        self._yaml = YAML()
        self._yaml.preserve_quotes = True
        self._yaml.default_flow_style = False

    # ----- load -----

    def load(self, path: Path) -> Battery:
        """YAML ファイルを読み込み、Battery モデルに変換する。

        Args:
            path: 読み込む YAML ファイルのパス

        Returns:
            パース済みの Battery オブジェクト

        Raises:
            FileNotFoundError: ファイルが存在しない場合
            ValueError: YAML 構文エラーまたはスキーマ検証エラーの場合
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"バッテリーファイルが見つかりません: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = self._yaml.load(f)
        except YAMLError as e:
            line_info = ""
            if getattr(e, "problem_mark", None) is not None:
                mark = e.problem_mark
                line_info = f" (行 {mark.line + 1}, 列 {mark.column + 1})"
            raise ValueError(f"YAML 構文エラー{line_info}: {e}") from e

        if data is None:
            raise ValueError("バッテリーファイルが空です")

        try:
            return Battery.model_validate(self._to_plain(data))
        except PydanticValidationError as e:
            raise ValueError(f"スキーマ検証エラー: {e}") from e

    # ----- dump -----

    def dump(self, battery: Battery, path: Path) -> None:
        """Battery モデルを YAML ファイルに書き出す。

        エイリアス（camelCase）で出力し、None のフィールドは省略する。
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = battery.model_dump(mode="json", by_alias=True, exclude_none=True)
        with open(path, "w", encoding="utf-8") as f:
            self._yaml.dump(data, f)

    # ----- validate -----

    def validate(self, path: Path) -> list[BatteryValidationError]:
        """YAML ファイルのスキーマ検証を行い、違反箇所のリストを返す。

        エラーがない場合は空リストを返す。
        """
        path = Path(path)
        errors: list[BatteryValidationError] = []

        if not path.exists():
            errors.append(BatteryValidationError(
                message=f"バッテリーファイルが見つかりません: {path}",
                location="file",
            ))
            return errors

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = self._yaml.load(f)
        except YAMLError as e:
            line = None
            if getattr(e, "problem_mark", None) is not None:
                line = e.problem_mark.line + 1
            errors.append(BatteryValidationError(
                message=f"YAML 構文エラー: {e}",
                location="yaml",
                line=line,
            ))
            return errors

        if data is None:
            errors.append(BatteryValidationError(
                message="バッテリーファイルが空です",
                location="file",
            ))
            return errors

        try:
            Battery.model_validate(self._to_plain(data))
        except PydanticValidationError as e:
            for err in e.errors():
                loc_parts = [str(part) for part in err.get("loc", [])]
                errors.append(BatteryValidationError(
                    message=err.get("msg", "不明なエラー"),
                    location=" -> ".join(loc_parts) if loc_parts else "unknown",
                    line=_line_of(data, err.get("loc", ())),
                ))

        return errors

    # ----- ユーティリティ -----

    def _to_plain(self, data: object) -> object:
        """ruamel.yaml の CommentedMap/CommentedSeq を通常の dict/list に再帰変換する。"""
        if isinstance(data, dict):
            return {key: self._to_plain(value) for key, value in data.items()}
        if isinstance(data, list):
            return [self._to_plain(item) for item in data]
        return data


def _line_of(data: object, loc: tuple) -> Optional[int]:
    """エラー位置（loc）に最も近い YAML ノードの行番号（1始まり）を返す。

    ruamel.yaml の CommentedMap / CommentedSeq が保持する lc 情報を辿る。
    Pydantic の loc には Union のモデル名が混ざるため、辿れない要素は読み飛ばす。
    """
    node = data
    line: Optional[int] = None
    for part in loc:
        lc = getattr(node, "lc", None)
        if isinstance(node, dict) and part in node:
            if lc is not None:
                try:
                    line = lc.key(part)[0] + 1
                except (KeyError, TypeError):
                    pass
            node = node[part]
        elif isinstance(node, list) and isinstance(part, int) and 0 <= part < len(node):
            if lc is not None:
                try:
                    line = lc.item(part)[0] + 1
                except (KeyError, TypeError, IndexError):
                    pass
            node = node[part]
    return line
