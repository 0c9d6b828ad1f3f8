"""
ブラウザドライバー — プローブエンジンが依存する最小インターフェース

プローブエンジンは BrowserDriver / DriverElement Protocol に対して書かれており、
実ブラウザ（Playwright）でもテスト用のインメモリ DOM でも同じロジックで動作する。

主な構成:
  - DriverElement: 要素ハンドル（可視判定、クリック、チェック状態、テキスト入力、ドラッグ）
  - BrowserDriver: ページ操作（遷移、ロケーター照会、スクリーンショット）
  - PlaywrightDriver / PlaywrightElement: Playwright async API によるアダプター
  - DriverError / NavigationError / BrowserLaunchError: ドライバー層の障害
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

from .locators import build_playwright_locator, describe_locator

if TYPE_CHECKING:
    from playwright.async_api import Locator as PwLocator, Page

    from ..dsl.schema import Locator

logger = logging.getLogger(__name__)

# 状態読み取り（is_enabled / is_checked）のタイムアウト（ミリ秒）
DEFAULT_STATE_TIMEOUT_MS = 250


# ---------------------------------------------------------------------------
# エラー定義
# ---------------------------------------------------------------------------

class DriverError(Exception):
    """ドライバー層の障害（セッション切断、ブラウザクラッシュ等）。"""


class NavigationError(DriverError):
    """ページ遷移に失敗した場合のエラー。実行全体を中断する。"""


class BrowserLaunchError(DriverError):
    """ブラウザ起動に失敗した場合のエラー。実行全体を中断する。"""


# ---------------------------------------------------------------------------
# Protocol 定義
# ---------------------------------------------------------------------------

@runtime_checkable
class DriverElement(Protocol):
    """ドライバーが所有する生きた要素への参照。

    プローブエンジンは 1 回のプローブの間だけこの参照を借用する。
    """

    async def is_visible(self) -> bool: ...

    async def is_enabled(self) -> bool: ...

    async def is_checked(self) -> bool: ...

    async def click(self, position: Optional[tuple[float, float]] = None) -> None: ...

    async def set_text(self, text: str) -> None: ...

    async def drag_by(self, dx: float, dy: float) -> None: ...


@runtime_checkable
class BrowserDriver(Protocol):
    """プローブエンジンが使用するブラウザ操作の最小インターフェース。"""

    async def navigate(self, url: str) -> None: ...

    async def query(self, locator: Locator) -> list[DriverElement]: ...

    async def screenshot(self) -> bytes: ...


# ---------------------------------------------------------------------------
# Playwright アダプター
# ---------------------------------------------------------------------------

class PlaywrightElement:
    """Playwright Locator（nth 指定済み）を DriverElement として包む。

    Playwright の auto-wait は既定で 30 秒待機するため、
    操作には action_timeout_ms、状態の読み取り（is_enabled / is_checked）には
    短い state_timeout_ms を明示的に渡す。
    """

    def __init__(
        self,
        locator: PwLocator,
        action_timeout_ms: int = 5000,
        state_timeout_ms: int = DEFAULT_STATE_TIMEOUT_MS,
    ) -> None:
        self._locator = locator
        self._timeout = action_timeout_ms
        self._state_timeout = state_timeout_ms

    async def is_visible(self) -> bool:
        return await self._locator.is_visible()

    async def is_enabled(self) -> bool:
        return await self._locator.is_enabled(timeout=self._state_timeout)

    async def is_checked(self) -> bool:
        return await self._locator.is_checked(timeout=self._state_timeout)

    async def click(self, position: Optional[tuple[float, float]] = None) -> None:
        kwargs: dict = {"timeout": self._timeout}
        if position is not None:
            kwargs["position"] = {"x": position[0], "y": position[1]}
        await self._locator.click(**kwargs)

    async def set_text(self, text: str) -> None:
        # fill() はフォーカスしてから値を置き換える
        await self._locator.fill(text, timeout=self._timeout)

    async def drag_by(self, dx: float, dy: float) -> None:
        """要素の中心を押下し、(dx, dy) だけ移動してから離す。"""
        box = await self._locator.bounding_box(timeout=self._timeout)
        if box is None:
            raise DriverError("要素の位置を取得できません（非表示または DOM から削除済み）")
        x = box["x"] + box["width"] / 2
        y = box["y"] + box["height"] / 2
        mouse = self._locator.page.mouse
        await mouse.move(x, y)
        await mouse.down()
        await mouse.move(x + dx, y + dy, steps=10)
        await mouse.up()


class PlaywrightDriver:
    """Playwright の Page を BrowserDriver として包むアダプター。

    使用例::

        driver = PlaywrightDriver(page, nav_timeout_ms=15000)
        await driver.navigate("http://localhost:3000/orders")
        elements = await driver.query(RoleLocator(role="button", name="Columns"))
    """

    def __init__(
        self,
        page: Page,
        nav_timeout_ms: int = 15_000,
        settle_ms: int = 0,
        action_timeout_ms: int = 5000,
        state_timeout_ms: int = DEFAULT_STATE_TIMEOUT_MS,
    ) -> None:
        """PlaywrightDriver を初期化する。

        Args:
            page: Playwright の Page オブジェクト
            nav_timeout_ms: ページ遷移のタイムアウト（ミリ秒）
            settle_ms: 遷移後の追加待機（ミリ秒）。0 で待機なし
            action_timeout_ms: 要素操作のタイムアウト（ミリ秒）
            state_timeout_ms: 要素の状態読み取りのタイムアウト（ミリ秒）
        """
        self._page = page
        self._nav_timeout = nav_timeout_ms
        self._settle_ms = settle_ms
        self._action_timeout = action_timeout_ms
        self._state_timeout = state_timeout_ms

    @property
    def page(self) -> Page:
        return self._page

    async def navigate(self, url: str) -> None:
        """指定 URL へ遷移し、DOMContentLoaded まで待機する。

        Raises:
            NavigationError: 遷移に失敗した場合
        """
        logger.info("goto: %s", url)
        try:
            await self._page.goto(url, timeout=self._nav_timeout)
            await self._page.wait_for_load_state("domcontentloaded")
            if self._settle_ms > 0:
                await self._page.wait_for_timeout(self._settle_ms)
        except Exception as exc:
            raise NavigationError(f"ページ遷移に失敗しました: {url}: {exc}") from exc

    async def query(self, locator: Locator) -> list[DriverElement]:
        """ロケーターに一致する要素を DOM 順で返す。一致なしは空リスト。

        Raises:
            DriverError: ロケーター照会中にドライバー層の障害が発生した場合
        """
        try:
            pw_locator = build_playwright_locator(self._page, locator)
            count = await pw_locator.count()
        except Exception as exc:
            raise DriverError(
                f"ロケーター照会に失敗しました: {describe_locator(locator)}: {exc}"
            ) from exc
        return [
            PlaywrightElement(pw_locator.nth(i), self._action_timeout, self._state_timeout)
            for i in range(count)
        ]

    async def screenshot(self) -> bytes:
        return await self._page.screenshot(full_page=True)

    async def title(self) -> str:
        return await self._page.title()

    @property
    def url(self) -> str:
        return self._page.url
