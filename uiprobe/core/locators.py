"""
ロケーター変換 — Locator モデルを Playwright Locator に変換する

text / attribute / role / css の 4 種別を Playwright の get_by_* / locator に
対応付ける。レポートやログで使う人間可読な説明文字列もここで生成する。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Union

from ..dsl.schema import AttributeLocator, CssLocator, Locator, RoleLocator, TextLocator

if TYPE_CHECKING:
    from playwright.async_api import FrameLocator, Locator as PwLocator, Page


class UnknownLocatorError(Exception):
    """未知のロケーター種別が渡された場合のエラー。"""


def build_playwright_locator(
    target: Union[Page, FrameLocator], locator: Locator
) -> PwLocator:
    """Locator モデルを Playwright Locator に変換する。

    Args:
        target: Playwright の Page または FrameLocator
        locator: 変換対象のロケーター

    Returns:
        Playwright Locator

    Raises:
        UnknownLocatorError: 未知のロケーター種別の場合
    """
    if isinstance(locator, TextLocator):
        if locator.exact is not None:
            return target.get_by_text(locator.text, exact=locator.exact)
        return target.get_by_text(locator.text)

    if isinstance(locator, AttributeLocator):
        return target.locator(attribute_css(locator))

    if isinstance(locator, RoleLocator):
        kwargs: dict = {}
        if locator.name is not None:
            kwargs["name"] = locator.name
        if locator.exact is not None:
            kwargs["exact"] = locator.exact
        return target.get_by_role(locator.role, **kwargs)

    if isinstance(locator, CssLocator):
        if locator.text is not None:
            return target.locator(locator.css, has_text=locator.text)
        return target.locator(locator.css)

    raise UnknownLocatorError(f"未知のロケーター種別です: {type(locator).__name__}")


def attribute_css(locator: AttributeLocator) -> str:
    """AttributeLocator を CSS 属性セレクタ文字列に変換する。

    例: tag=button, aria-label contains "column" → button[aria-label*="column"]
    """
    operator = "*=" if locator.match == "contains" else "="
    value = locator.value.replace("\\", "\\\\").replace('"', '\\"')
    return f'{locator.tag or ""}[{locator.attribute}{operator}"{value}"]'


def describe_locator(locator: Locator) -> str:
    """ロケーターの人間可読な説明文字列を生成する。

    verdict の detail やログで使用する。
    """
    if isinstance(locator, TextLocator):
        return f"text='{locator.text}'"
    if isinstance(locator, AttributeLocator):
        op = "*=" if locator.match == "contains" else "="
        prefix = f"{locator.tag} " if locator.tag else ""
        return f"{prefix}[{locator.attribute}{op}'{locator.value}']"
    if isinstance(locator, RoleLocator):
        if locator.name:
            return f"role='{locator.role}', name='{locator.name}'"
        return f"role='{locator.role}'"
    if isinstance(locator, CssLocator):
        if locator.text:
            return f"css='{locator.css}', text='{locator.text}'"
        return f"css='{locator.css}'"
    return f"unknown({type(locator).__name__})"
