"""
DSL スキーマ定義 — ケイパビリティ記述子モデル

バッテリー YAML で使用するロケーター・アクション・事後条件・
CapabilityDescriptor の Pydantic v2 モデルを定義する。

ロケーターは 4 種類のタグ付きバリアントで表現する:
  - text: テキスト一致
  - attribute: 属性一致（equals / contains）
  - role: ARIA ロール（+ アクセシブルネーム）
  - css: 構造（CSS セレクタ、text 補助条件あり）

候補ロケーターは記述順が優先度となり、最初に可視となった候補を採用する。
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# ロケーター定義
# ---------------------------------------------------------------------------

class TextLocator(BaseModel):
    """テキスト内容によるロケーター。

    exact を True にすると完全一致、省略時は部分一致（大文字小文字を区別しない）。
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    text: str = Field(..., min_length=1, description="テキスト内容")
    exact: Optional[bool] = Field(default=None, description="完全一致検索")


class AttributeLocator(BaseModel):
    """属性値によるロケーター。

    data-testid / aria-label / title 等の属性値で要素を特定する。
    tag を指定するとタグ名で絞り込む（例: button）。
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    attribute: str = Field(..., min_length=1, description="属性名")
    value: str = Field(..., description="属性値")
    match: Literal["equals", "contains"] = Field(
        default="equals", description="一致方式（完全一致 / 部分一致）",
    )
    tag: Optional[str] = Field(default=None, description="タグ名による絞り込み")


class RoleLocator(BaseModel):
    """ARIA ロールによるロケーター。

    name を併用することで、同一ロールの要素を区別できる。
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    role: str = Field(..., min_length=1, description="ARIA ロール名（button, menu 等）")
    name: Optional[str] = Field(default=None, description="アクセシブルネーム（補助条件）")
    exact: Optional[bool] = Field(default=None, description="name の完全一致検索")


class CssLocator(BaseModel):
    """CSS セレクタによる構造ロケーター。

    text を補助条件として併用し、同一セレクタ内の要素を絞り込める。
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    css: str = Field(..., min_length=1, description="CSS セレクタ文字列")
    text: Optional[str] = Field(default=None, description="テキスト内容による補助条件")


Locator = Union[TextLocator, AttributeLocator, RoleLocator, CssLocator]
"""全ロケーター種別の Union 型。

各モデルは extra="forbid" のため、フィールド構成で一意に判別される。
"""


# ---------------------------------------------------------------------------
# アクション定義
# ---------------------------------------------------------------------------

class ActionKind(str, Enum):
    """解決済み要素に対して実行するアクション種別。"""

    CLICK = "click"
    TOGGLE_CHECKBOX = "toggleCheckbox"
    TYPE_TEXT = "typeText"
    DRAG = "drag"
    NONE = "none"


class Position(BaseModel):
    """要素左上からの相対座標（ピクセル）。"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    x: float = Field(..., ge=0)
    y: float = Field(..., ge=0)


class DragOffset(BaseModel):
    """drag アクションの移動量（ピクセル、負値で左・上方向）。"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    dx: float = 0
    dy: float = 0


# ---------------------------------------------------------------------------
# 前提条件定義
# ---------------------------------------------------------------------------

class EnsureOpen(BaseModel):
    """解決フェーズの前に container を可視にしておく前提条件。

    container のいずれも可視でない場合に限り、trigger の先頭一致要素をクリックし、
    container が可視になるまで待機する。既に可視なら何もしない。
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    container: tuple[Locator, ...] = Field(..., min_length=1)
    trigger: tuple[Locator, ...] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# 事後条件定義
# ---------------------------------------------------------------------------

class ContainerVisible(BaseModel):
    """コンテナ（ロケーター集合のいずれか）が可視になること。"""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    kind: Literal["containerVisible"] = "containerVisible"
    locators: tuple[Locator, ...] = Field(..., min_length=1)
    failure_detail: Optional[str] = Field(default=None, alias="failureDetail")


class ContainerHidden(BaseModel):
    """コンテナ（ロケーター集合のいずれも）が非表示になること。"""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    kind: Literal["containerHidden"] = "containerHidden"
    locators: tuple[Locator, ...] = Field(..., min_length=1)
    failure_detail: Optional[str] = Field(default=None, alias="failureDetail")


class CheckedStateChanged(BaseModel):
    """チェック状態がアクション前と異なること（方向は問わない）。"""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    kind: Literal["checkedStateChanged"] = "checkedStateChanged"
    failure_detail: Optional[str] = Field(default=None, alias="failureDetail")


class NoPostCondition(BaseModel):
    """事後条件なし（解決とアクションの成功のみで合格）。"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["none"] = "none"


class MinimumCount(BaseModel):
    """いずれかの候補ロケーターで count 個以上の要素が可視であること。"""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    kind: Literal["minimumCount"] = "minimumCount"
    locators: tuple[Locator, ...] = Field(..., min_length=1)
    count: int = Field(default=1, ge=1)
    failure_detail: Optional[str] = Field(default=None, alias="failureDetail")


PostCondition = Annotated[
    Union[
        ContainerVisible, ContainerHidden, CheckedStateChanged, MinimumCount, NoPostCondition,
    ],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# CapabilityDescriptor
# ---------------------------------------------------------------------------

class CapabilityDescriptor(BaseModel):
    """1 つの UI ケイパビリティを表す不変の記述子。

    candidate_locators が空の記述子は構成エラーとして扱われ、
    プローブ時に skipped となる（モデル検証ではエラーにしない）。
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: str = Field(..., min_length=1, description="レポートで使用する識別子")
    candidate_locators: tuple[Locator, ...] = Field(
        default=(), alias="candidateLocators",
        description="候補ロケーター（記述順が優先度）",
    )
    action: ActionKind = Field(default=ActionKind.CLICK)
    post_condition: PostCondition = Field(
        default_factory=NoPostCondition, alias="postCondition",
    )
    timeout_ms: int = Field(default=2000, gt=0, alias="timeoutMs")
    text: Optional[str] = Field(default=None, description="typeText で入力する文字列")
    position: Optional[Position] = Field(default=None, description="click の相対座標")
    drag_offset: Optional[DragOffset] = Field(
        default=None, alias="dragOffset", description="drag の移動量",
    )
    ensure_open: Optional[EnsureOpen] = Field(
        default=None, alias="ensureOpen", description="解決前に開いておくコンテナ",
    )
    description: Optional[str] = Field(default=None, description="説明文（任意）")

    @model_validator(mode="after")
    def _check_action_arguments(self) -> "CapabilityDescriptor":
        if self.action is ActionKind.TYPE_TEXT and self.text is None:
            raise ValueError("typeText アクションには text が必要です")
        if self.action is ActionKind.DRAG and self.drag_offset is None:
            raise ValueError("drag アクションには dragOffset が必要です")
        if (
            isinstance(self.post_condition, CheckedStateChanged)
            and self.action is not ActionKind.TOGGLE_CHECKBOX
        ):
            raise ValueError(
                "checkedStateChanged は toggleCheckbox アクションとのみ併用できます"
            )
        return self

    def with_timeout(self, timeout_ms: int) -> "CapabilityDescriptor":
        """タイムアウトを差し替えた新しい記述子を返す。"""
        return self.model_copy(update={"timeout_ms": timeout_ms})


class Battery(BaseModel):
    """ページごとに順次実行するケイパビリティ記述子の列。"""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(default="column-management", description="バッテリー名")
    probes: list[CapabilityDescriptor] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_names(self) -> "Battery":
        seen: set[str] = set()
        for probe in self.probes:
            if probe.name in seen:
                raise ValueError(f"プローブ名が重複しています: {probe.name}")
            seen.add(probe.name)
        return self

    def with_timeout(self, timeout_ms: int) -> "Battery":
        """全プローブのタイムアウトを差し替えた新しいバッテリーを返す。"""
        return Battery(
            title=self.title,
            probes=[p.with_timeout(timeout_ms) for p in self.probes],
        )
