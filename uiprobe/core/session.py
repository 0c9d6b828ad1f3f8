"""
SessionRunner — ブラウザセッションの管理とページごとのバッテリー実行

主な機能:
  - Browser / BrowserContext の生成と、全経路での確実なクローズ
  - ページ遷移後、バッテリーのプローブを厳密に逐次実行
  - workers > 1 の場合、ページごとに独立した BrowserContext で並列実行
  - 起動・遷移失敗（致命的エラー）での実行中断と run verdict の記録
  - 失敗したプローブのスクリーンショット保存

プローブ単位のエラーは ProbeEngine 内で verdict に変換されるため、
ここで扱う例外はドライバー層の致命的エラーのみとなる。
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional, Sequence
from urllib.parse import urlparse

from ..config import ProbeConfig
from .driver import BrowserDriver, BrowserLaunchError, PlaywrightDriver
from .probe import ProbeEngine
from .results import ProbeOutcome, ProbeRun, ProbeVerdict

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page, Playwright

    from ..dsl.schema import CapabilityDescriptor
    from .artifacts import ArtifactsManager

logger = logging.getLogger(__name__)


class SessionRunner:
    """ページ一覧に対してバッテリーを実行するランナー。

    使用例::

        runner = SessionRunner(ProbeEngine(), config, artifacts)
        run = await runner.run("http://localhost:3000", ["/orders"], battery.probes)
    """

    def __init__(
        self,
        engine: ProbeEngine,
        config: ProbeConfig,
        artifacts: Optional[ArtifactsManager] = None,
    ) -> None:
        """SessionRunner を初期化する。

        Args:
            engine: プローブエンジン
            config: 実行設定
            artifacts: 成果物管理（None の場合はスクリーンショットを保存しない）
        """
        self._engine = engine
        self._config = config
        self._artifacts = artifacts

    # -------------------------------------------------------------------
    # パブリック API
    # -------------------------------------------------------------------

    async def run(
        self,
        base_url: str,
        pages: Sequence[str],
        probes: Sequence[CapabilityDescriptor],
        run: Optional[ProbeRun] = None,
    ) -> ProbeRun:
        """ブラウザを起動し、各ページでバッテリーを実行する。

        起動失敗・遷移失敗は実行全体を中断し、run verdict として記録する。
        ブラウザは例外発生時を含む全経路でクローズされる。

        Args:
            base_url: 対象アプリケーションのベース URL
            pages: 訪問するページパス（実行順）
            probes: 各ページで実行するケイパビリティ記述子
            run: 結果を蓄積する ProbeRun（省略時は新規作成）

        Returns:
            実行結果
        """
        from playwright.async_api import async_playwright

        run = run if run is not None else ProbeRun(base_url=base_url)

        try:
            async with async_playwright() as pw:
                browser = await self._launch(pw)
                try:
                    if self._config.workers > 1 and len(pages) > 1:
                        await self._run_parallel(browser, base_url, pages, probes, run)
                    else:
                        await self._run_sequential(browser, base_url, pages, probes, run)
                finally:
                    await browser.close()
        except Exception as exc:
            logger.error("実行を中断しました: %s", exc)
            run.abort(f"{type(exc).__name__}: {exc}")
        finally:
            run.finish()

        return run

    async def run_battery(
        self,
        driver: BrowserDriver,
        probes: Sequence[CapabilityDescriptor],
        page: str,
        run: ProbeRun,
    ) -> None:
        """1 ページ分のバッテリーを逐次実行し、verdict を run に記録する。

        あるプローブが失敗しても後続のプローブは実行される。
        """
        for descriptor in probes:
            verdict = await self._engine.probe(descriptor, driver, page=page)
            if verdict.outcome is ProbeOutcome.FAILED:
                verdict = await self._capture_failure(driver, verdict)
            run.record(verdict)

    # -------------------------------------------------------------------
    # 実行モード
    # -------------------------------------------------------------------

    async def _run_sequential(
        self,
        browser: Browser,
        base_url: str,
        pages: Sequence[str],
        probes: Sequence[CapabilityDescriptor],
        run: ProbeRun,
    ) -> None:
        """単一コンテキストで全ページを順に実行する。"""
        context = await self._new_context(browser)
        try:
            driver = self._make_driver(await context.new_page())
            for page in pages:
                await driver.navigate(page_url(base_url, page))
                await self.run_battery(driver, probes, page, run)
        finally:
            await context.close()

    async def _run_parallel(
        self,
        browser: Browser,
        base_url: str,
        pages: Sequence[str],
        probes: Sequence[CapabilityDescriptor],
        run: ProbeRun,
    ) -> None:
        """ページごとに独立したコンテキストで並列実行する。

        asyncio.Semaphore で同時実行数を workers に制限する。
        各ページの結果はページ順に run へ結合する。いずれかのページで
        致命的エラーが発生した場合は、結合後に最初のエラーを送出する。
        """
        semaphore = asyncio.Semaphore(self._config.workers)

        async def _run_page(page: str) -> ProbeRun:
            page_run = ProbeRun(base_url=base_url)
            async with semaphore:
                context = await self._new_context(browser)
                try:
                    driver = self._make_driver(await context.new_page())
                    await driver.navigate(page_url(base_url, page))
                    await self.run_battery(driver, probes, page, page_run)
                finally:
                    await context.close()
            return page_run

        outcomes = await asyncio.gather(
            *(_run_page(p) for p in pages), return_exceptions=True,
        )

        first_error: Optional[BaseException] = None
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                first_error = first_error or outcome
                continue
            run.merge(outcome)

        if first_error is not None:
            raise first_error

    # -------------------------------------------------------------------
    # リソース生成
    # -------------------------------------------------------------------

    async def _launch(self, pw: Playwright) -> Browser:
        try:
            return await pw.chromium.launch(
                headless=not self._config.headed,
                slow_mo=self._config.slow_mo,
            )
        except Exception as exc:
            raise BrowserLaunchError(f"ブラウザの起動に失敗しました: {exc}") from exc

    async def _new_context(self, browser: Browser) -> BrowserContext:
        return await browser.new_context(
            viewport={
                "width": self._config.viewport_width,
                "height": self._config.viewport_height,
            },
            ignore_https_errors=True,
        )

    def _make_driver(self, page: Page) -> PlaywrightDriver:
        return PlaywrightDriver(
            page,
            nav_timeout_ms=self._config.nav_timeout_ms,
            settle_ms=self._config.settle_ms,
            action_timeout_ms=self._config.action_timeout_ms,
        )

    async def _capture_failure(
        self, driver: BrowserDriver, verdict: ProbeVerdict
    ) -> ProbeVerdict:
        """失敗 verdict にスクリーンショットを付与する。保存失敗は警告のみ。"""
        if self._artifacts is None or self._config.screenshot_mode == "none":
            return verdict
        try:
            data = await driver.screenshot()
            path = self._artifacts.save_screenshot(data, verdict.page, verdict.capability)
            return verdict.with_screenshot(path)
        except Exception as exc:
            logger.warning("スクリーンショット保存に失敗: %s", exc)
            return verdict


# ---------------------------------------------------------------------------
# 接続確認
# ---------------------------------------------------------------------------

async def check_connection(url: str, config: ProbeConfig) -> tuple[str, str]:
    """ブラウザを起動して URL に遷移し、(ページタイトル, 最終 URL) を返す。

    Raises:
        BrowserLaunchError: ブラウザ起動に失敗した場合
        NavigationError: 遷移に失敗した場合
    """
    from playwright.async_api import async_playwright

    async with async_playwright() as pw:
        try:
            browser = await pw.chromium.launch(headless=not config.headed)
        except Exception as exc:
            raise BrowserLaunchError(f"ブラウザの起動に失敗しました: {exc}") from exc
        try:
            page = await browser.new_page(ignore_https_errors=True)
            driver = PlaywrightDriver(
                page, nav_timeout_ms=config.nav_timeout_ms, settle_ms=config.settle_ms,
            )
            await driver.navigate(url)
            return await driver.title(), driver.url
        finally:
            await browser.close()


# ---------------------------------------------------------------------------
# ヘルパー関数
# ---------------------------------------------------------------------------

def page_url(base_url: str, page: str) -> str:
    """ベース URL とページパスを結合する。

    page がスキーム付きの URL の場合はそのまま返す。
    """
    if urlparse(page).scheme:
        return page
    return f"{base_url.rstrip('/')}/{page.lstrip('/')}"
