"""
組み込みバッテリー — 列管理ドロップダウンのケイパビリティ記述子

データテーブルの「Columns」ドロップダウン（列の表示切替とドラッグハンドルによる
並べ替え）を検証するプローブを、ページごとに以下の順で実行する:

  1. open-menu                        Columns ボタンでメニューが開く
  2. checkbox-toggle-changes-state    チェックボックスのクリックで状態が変わる
  3. checkbox-toggle-keeps-menu-open  チェックボックスのクリック後もメニューが開いたまま
  4. drag-handles-present             メニュー内にドラッグハンドルが表示されている
  5. outside-click-closes-menu        メニュー外のクリックでメニューが閉じる

2 から 5 はメニューが閉じていれば Columns ボタンで開き直してから実行するため、
前のプローブの verdict やメニューの開閉状態に依存しない。
"""

from __future__ import annotations

from .dsl.schema import (
    ActionKind,
    AttributeLocator,
    Battery,
    CapabilityDescriptor,
    CheckedStateChanged,
    ContainerHidden,
    ContainerVisible,
    CssLocator,
    EnsureOpen,
    NoPostCondition,
    Position,
    RoleLocator,
)

# ---------------------------------------------------------------------------
# 候補ロケーター
# ---------------------------------------------------------------------------

COLUMNS_BUTTON = (
    RoleLocator(role="button", name="Columns"),
    CssLocator(css="button", text="Columns"),
    AttributeLocator(attribute="data-testid", value="columns-button"),
    AttributeLocator(attribute="aria-label", value="column", match="contains", tag="button"),
    AttributeLocator(attribute="title", value="column", match="contains", tag="button"),
    CssLocator(css=".columns-button"),
)

MENU_CONTAINER = (
    RoleLocator(role="menu"),
    CssLocator(css="[data-radix-popper-content-wrapper]"),
    RoleLocator(role="listbox"),
    AttributeLocator(attribute="data-testid", value="column-dropdown"),
    CssLocator(css=".dropdown-menu"),
    CssLocator(css=".columns-dropdown"),
)

MENU_CHECKBOXES = (
    CssLocator(css='[role="menu"] [role="menuitemcheckbox"]'),
    CssLocator(css='[role="menu"] input[type="checkbox"]'),
    CssLocator(css='[role="menu"] [role="checkbox"]'),
    CssLocator(css='[data-radix-popper-content-wrapper] input[type="checkbox"]'),
    CssLocator(css='[data-radix-popper-content-wrapper] [role="checkbox"]'),
    CssLocator(css='.columns-dropdown input[type="checkbox"]'),
)

DRAG_HANDLES = (
    AttributeLocator(attribute="data-testid", value="drag", match="contains"),
    CssLocator(css=".drag-handle"),
    CssLocator(css=".grip"),
    AttributeLocator(attribute="aria-label", value="drag", match="contains"),
    AttributeLocator(attribute="title", value="drag", match="contains"),
    CssLocator(css=".lucide-grip-vertical"),
)

PAGE_BODY = (CssLocator(css="body"),)

MENU_OPEN = EnsureOpen(container=MENU_CONTAINER, trigger=COLUMNS_BUTTON)


# ---------------------------------------------------------------------------
# バッテリー
# ---------------------------------------------------------------------------

def default_battery(timeout_ms: int = 2000) -> Battery:
    """列管理ドロップダウンの組み込みバッテリーを生成する。

    Args:
        timeout_ms: 各プローブのタイムアウト（ミリ秒）

    Returns:
        5 プローブからなる Battery
    """
    return Battery(
        title="column-management",
        probes=[
            CapabilityDescriptor(
                name="open-menu",
                description="Columns ボタンのクリックで列メニューが開く",
                candidate_locators=COLUMNS_BUTTON,
                action=ActionKind.CLICK,
                post_condition=ContainerVisible(locators=MENU_CONTAINER),
                timeout_ms=timeout_ms,
            ),
            CapabilityDescriptor(
                name="checkbox-toggle-changes-state",
                description="列チェックボックスのクリックでチェック状態が反転する",
                ensure_open=MENU_OPEN,
                candidate_locators=MENU_CHECKBOXES,
                action=ActionKind.TOGGLE_CHECKBOX,
                post_condition=CheckedStateChanged(),
                timeout_ms=timeout_ms,
            ),
            CapabilityDescriptor(
                name="checkbox-toggle-keeps-menu-open",
                description="列チェックボックスのクリック後もメニューが開いたまま",
                ensure_open=MENU_OPEN,
                candidate_locators=MENU_CHECKBOXES,
                action=ActionKind.TOGGLE_CHECKBOX,
                post_condition=ContainerVisible(
                    locators=MENU_CONTAINER,
                    failure_detail="menu closed unexpectedly",
                ),
                timeout_ms=timeout_ms,
            ),
            CapabilityDescriptor(
                name="drag-handles-present",
                description="列メニュー内に並べ替え用のドラッグハンドルが表示されている",
                ensure_open=MENU_OPEN,
                candidate_locators=DRAG_HANDLES,
                action=ActionKind.NONE,
                post_condition=NoPostCondition(),
                timeout_ms=timeout_ms,
            ),
            CapabilityDescriptor(
                name="outside-click-closes-menu",
                description="メニュー外（body の座標 100,100）のクリックでメニューが閉じる",
                ensure_open=MENU_OPEN,
                candidate_locators=PAGE_BODY,
                action=ActionKind.CLICK,
                position=Position(x=100, y=100),
                post_condition=ContainerHidden(locators=MENU_CONTAINER),
                timeout_ms=timeout_ms,
            ),
        ],
    )
