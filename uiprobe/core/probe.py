"""
プローブエンジン — 候補解決・アクション・事後条件検証

CapabilityDescriptor を受け取り、以下の 3 フェーズで verdict を確定する
（ensure_open が指定された記述子は、解決の前にコンテナを開いておく）:

  1. 解決: 候補ロケーターを記述順に照会し、最初の一致が可視かつ有効な
     最初の候補を採用する（最良一致ではなく先頭一致）。timeout_ms まで
     ポーリングし、見つからなければ failed。
  2. アクション: click / toggleCheckbox / typeText / drag を実行する。ドライバーの
     例外はここで捕捉して failed に変換し、実行全体は継続させる。
  3. 検証: 事後条件が成立するまで同じ間隔・期限でポーリングする。

候補ロケーターが空の記述子は構成エラーとして skipped を返す。
失敗時の detail には必ずフェーズ名と理由が含まれる。
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from ..dsl.schema import (
    ActionKind,
    CapabilityDescriptor,
    CheckedStateChanged,
    ContainerHidden,
    ContainerVisible,
    EnsureOpen,
    Locator,
    MinimumCount,
    NoPostCondition,
)
from .driver import BrowserDriver, DriverElement
from .locators import describe_locator
from .results import ProbeOutcome, ProbePhase, ProbeVerdict, ResolvedElement
from .waits import DEFAULT_POLL_INTERVAL_MS, poll_until

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 内部データ
# ---------------------------------------------------------------------------

@dataclass
class _ActionObservation:
    """アクションフェーズで観測した状態。"""

    checked_before: Optional[bool] = None
    checked_after: Optional[bool] = None


# ---------------------------------------------------------------------------
# ProbeEngine 本体
# ---------------------------------------------------------------------------

class ProbeEngine:
    """UI ケイパビリティのプローブエンジン。

    ブラウザの状態は所有せず、BrowserDriver から要素参照を借用するのみ。

    使用例::

        engine = ProbeEngine(poll_interval_ms=100)
        verdict = await engine.probe(descriptor, driver, page="/orders")
    """

    def __init__(self, poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS) -> None:
        if poll_interval_ms <= 0:
            raise ValueError(f"poll_interval_ms は正の値を指定してください: {poll_interval_ms}")
        self._interval = poll_interval_ms

    @property
    def poll_interval_ms(self) -> int:
        return self._interval

    # -------------------------------------------------------------------
    # パブリック API
    # -------------------------------------------------------------------

    async def probe(
        self,
        descriptor: CapabilityDescriptor,
        driver: BrowserDriver,
        page: Optional[str] = None,
    ) -> ProbeVerdict:
        """記述子に従ってプローブを実行し、verdict を返す。

        プローブ単位のエラーはすべて verdict に変換され、例外として送出されない。

        Args:
            descriptor: プローブ対象のケイパビリティ記述子
            driver: ブラウザドライバー
            page: レポート用のページ識別子

        Returns:
            プローブ結果
        """
        start = time.perf_counter()
        name = descriptor.name

        def verdict(
            outcome: ProbeOutcome,
            detail: str,
            phase: ProbePhase,
            matched: Optional[str] = None,
        ) -> ProbeVerdict:
            result = ProbeVerdict(
                capability=name,
                outcome=outcome,
                detail=detail,
                timestamp=datetime.now(),
                page=page,
                matched_locator=matched,
                phase=phase,
                duration_ms=(time.perf_counter() - start) * 1000,
            )
            log = logger.info if outcome is ProbeOutcome.PASSED else logger.warning
            log("[%s] %s: %s", outcome.value, name, detail)
            return result

        if not descriptor.candidate_locators:
            return verdict(
                ProbeOutcome.SKIPPED,
                "configuration: no locators configured",
                ProbePhase.CONFIGURATION,
            )

        # ----- 0. 前提条件 -----
        if descriptor.ensure_open is not None:
            setup_error = await self._ensure_open(
                descriptor.ensure_open, driver, descriptor.timeout_ms,
            )
            if setup_error is not None:
                return verdict(ProbeOutcome.FAILED, f"setup: {setup_error}", ProbePhase.SETUP)

        # ----- 1. 解決フェーズ -----
        resolved, reasons = await self._resolve_polling(
            descriptor.candidate_locators, driver, descriptor.timeout_ms,
        )
        if resolved is None:
            detail = (
                f"resolution: no visible candidate for {name} "
                f"within {descriptor.timeout_ms}ms"
            )
            if reasons:
                detail += "; tried: " + "; ".join(reasons)
            return verdict(ProbeOutcome.FAILED, detail, ProbePhase.RESOLUTION)

        matched = f"matched {resolved.description}"

        # ----- 2. アクションフェーズ -----
        try:
            observation = await self._perform(descriptor, resolved.element)
        except Exception as exc:
            return verdict(
                ProbeOutcome.FAILED,
                f"action: {descriptor.action.value} on {resolved.description} "
                f"failed: {type(exc).__name__}: {exc}",
                ProbePhase.ACTION,
                resolved.description,
            )

        # ----- 3. 検証フェーズ -----
        satisfied, condition_detail = await self._verify(
            descriptor, resolved, observation, driver,
        )
        if not satisfied:
            return verdict(
                ProbeOutcome.FAILED,
                f"postcondition: {condition_detail} ({matched})",
                ProbePhase.POSTCONDITION,
                resolved.description,
            )

        detail = matched
        if condition_detail:
            detail += f"; {condition_detail}"
        return verdict(
            ProbeOutcome.PASSED, detail, ProbePhase.POSTCONDITION, resolved.description,
        )

    async def resolve(
        self,
        locators: Sequence[Locator],
        driver: BrowserDriver,
        timeout_ms: int,
    ) -> Optional[ResolvedElement]:
        """候補ロケーターを timeout_ms までポーリングして解決する。

        一致なしは通常の結果として None を返す（例外は送出しない）。
        """
        resolved, _ = await self._resolve_polling(locators, driver, timeout_ms)
        return resolved

    # -------------------------------------------------------------------
    # 前提条件
    # -------------------------------------------------------------------

    async def _ensure_open(
        self,
        precondition: EnsureOpen,
        driver: BrowserDriver,
        timeout_ms: int,
    ) -> Optional[str]:
        """container が非表示なら trigger をクリックして開く。

        Returns:
            失敗理由（成功時、または既に開いている場合は None）
        """
        already_open, _ = await self._resolve_once(
            precondition.container, driver, require_enabled=False,
        )
        if already_open is not None:
            return None

        trigger, reasons = await self._resolve_polling(precondition.trigger, driver, timeout_ms)
        if trigger is None:
            detail = f"no visible trigger within {timeout_ms}ms"
            if reasons:
                detail += "; tried: " + "; ".join(reasons)
            return detail

        logger.debug("前提条件: %s をクリックしてコンテナを開きます", trigger.description)
        try:
            await trigger.element.click()
        except Exception as exc:
            return f"click on {trigger.description} failed: {type(exc).__name__}: {exc}"

        async def container_open() -> Optional[ResolvedElement]:
            found, _ = await self._resolve_once(
                precondition.container, driver, require_enabled=False,
            )
            return found

        result = await poll_until(container_open, timeout_ms, self._interval)
        if not result.satisfied:
            return (
                f"container did not open within {timeout_ms}ms "
                f"after clicking {trigger.description}"
            )
        return None

    # -------------------------------------------------------------------
    # 解決
    # -------------------------------------------------------------------

    async def _resolve_polling(
        self,
        locators: Sequence[Locator],
        driver: BrowserDriver,
        timeout_ms: int,
    ) -> tuple[Optional[ResolvedElement], list[str]]:
        """_resolve_once を期限までポーリングし、最後の試行の失敗理由も返す。"""
        last_reasons: list[str] = []

        async def attempt() -> Optional[ResolvedElement]:
            nonlocal last_reasons
            resolved, last_reasons = await self._resolve_once(locators, driver)
            return resolved

        result = await poll_until(attempt, timeout_ms, self._interval)
        return result.value, last_reasons

    async def _resolve_once(
        self,
        locators: Sequence[Locator],
        driver: BrowserDriver,
        require_enabled: bool = True,
    ) -> tuple[Optional[ResolvedElement], list[str]]:
        """候補ロケーターを記述順に 1 巡だけ試行する。

        各候補の最初の一致要素のみを判定し、可視かつ有効なら採用する。
        後続の候補は、条件を満たす候補が見つかった時点で試行しない。
        コンテナの可視判定では require_enabled=False とし、有効判定を省く。
        """
        reasons: list[str] = []

        for idx, locator in enumerate(locators):
            desc = describe_locator(locator)
            try:
                elements = await driver.query(locator)
                if not elements:
                    reasons.append(f"[{idx}] {desc}: no match")
                    continue

                first = elements[0]
                if not await first.is_visible():
                    reasons.append(f"[{idx}] {desc}: not visible")
                    continue
                if require_enabled and not await first.is_enabled():
                    reasons.append(f"[{idx}] {desc}: not enabled")
                    continue

                logger.debug("候補 %d (%s) を採用しました", idx, desc)
                return ResolvedElement(
                    locator=locator, index=idx, description=desc, element=first,
                ), reasons
            except Exception as exc:  # noqa: BLE001
                reasons.append(f"[{idx}] {desc}: {type(exc).__name__}: {exc}")

        return None, reasons

    # -------------------------------------------------------------------
    # アクション
    # -------------------------------------------------------------------

    async def _perform(
        self, descriptor: CapabilityDescriptor, element: DriverElement
    ) -> _ActionObservation:
        """記述子のアクションを解決済み要素に対して実行する。"""
        observation = _ActionObservation()
        action = descriptor.action

        if action is ActionKind.CLICK:
            position = None
            if descriptor.position is not None:
                position = (descriptor.position.x, descriptor.position.y)
            await element.click(position)

        elif action is ActionKind.TOGGLE_CHECKBOX:
            observation.checked_before = await element.is_checked()
            await element.click()
            # クリック後の読み取りはポーリング間隔 1 回分で打ち切り、失敗は検証フェーズに委ねる
            try:
                observation.checked_after = await asyncio.wait_for(
                    element.is_checked(), timeout=self._interval / 1000,
                )
            except Exception as exc:  # noqa: BLE001
                logger.debug(
                    "クリック後のチェック状態を取得できませんでした: %s: %s",
                    type(exc).__name__, exc,
                )

        elif action is ActionKind.TYPE_TEXT:
            await element.set_text(descriptor.text or "")

        elif action is ActionKind.DRAG:
            offset = descriptor.drag_offset
            await element.drag_by(offset.dx, offset.dy)

        return observation

    # -------------------------------------------------------------------
    # 検証
    # -------------------------------------------------------------------

    async def _verify(
        self,
        descriptor: CapabilityDescriptor,
        resolved: ResolvedElement,
        observation: _ActionObservation,
        driver: BrowserDriver,
    ) -> tuple[bool, str]:
        """事後条件をポーリングで評価し、(成立したか, 説明) を返す。"""
        condition = descriptor.post_condition
        timeout_ms = descriptor.timeout_ms

        if isinstance(condition, NoPostCondition):
            return True, _describe_toggle(observation)

        if isinstance(condition, ContainerVisible):
            last_reasons: list[str] = []

            async def container_visible() -> Optional[ResolvedElement]:
                nonlocal last_reasons
                found, last_reasons = await self._resolve_once(
                    condition.locators, driver, require_enabled=False,
                )
                return found

            result = await poll_until(container_visible, timeout_ms, self._interval)
            toggle = _describe_toggle(observation)
            if result.satisfied:
                detail = f"container visible via {result.value.description}"
                return True, f"{toggle}; {detail}" if toggle else detail
            detail = condition.failure_detail or (
                f"container never became visible within {timeout_ms}ms"
            )
            if toggle:
                detail += f"; {toggle}"
            if last_reasons:
                detail += "; tried: " + "; ".join(last_reasons)
            return False, detail

        if isinstance(condition, ContainerHidden):
            async def container_hidden() -> bool:
                return not await _any_visible(condition.locators, driver)

            result = await poll_until(container_hidden, timeout_ms, self._interval)
            if result.satisfied:
                return True, "container hidden"
            detail = condition.failure_detail or (
                f"container still visible after {timeout_ms}ms"
            )
            if result.last_error:
                detail += f" (last error: {result.last_error})"
            return False, detail

        if isinstance(condition, CheckedStateChanged):
            before = observation.checked_before
            element = resolved.element

            async def state_changed() -> bool:
                observation.checked_after = await element.is_checked()
                return observation.checked_after != before

            result = await poll_until(state_changed, timeout_ms, self._interval)
            if result.satisfied:
                return True, _describe_toggle(observation)
            detail = condition.failure_detail or (
                f"checked state stayed {_state_word(before)} for {timeout_ms}ms"
            )
            if result.last_error:
                detail += f" (last error: {result.last_error})"
            return False, detail

        if isinstance(condition, MinimumCount):
            most_seen = 0
            count_error: Optional[str] = None

            async def enough_visible() -> Optional[tuple[int, str]]:
                nonlocal most_seen, count_error
                for locator in condition.locators:
                    try:
                        count = await _count_visible(driver, locator)
                    except Exception as exc:  # noqa: BLE001
                        count_error = (
                            f"{describe_locator(locator)}: {type(exc).__name__}: {exc}"
                        )
                        continue
                    most_seen = max(most_seen, count)
                    if count >= condition.count:
                        return count, describe_locator(locator)
                return None

            result = await poll_until(enough_visible, timeout_ms, self._interval)
            if result.satisfied:
                count, desc = result.value
                return True, f"{count} visible via {desc}"
            detail = condition.failure_detail or (
                f"expected at least {condition.count} visible elements, "
                f"found {most_seen} within {timeout_ms}ms"
            )
            last_error = count_error or result.last_error
            if last_error:
                detail += f" (last error: {last_error})"
            return False, detail

        return False, f"unknown postcondition: {type(condition).__name__}"


# ---------------------------------------------------------------------------
# ヘルパー関数
# ---------------------------------------------------------------------------

async def _any_visible(locators: Sequence[Locator], driver: BrowserDriver) -> bool:
    """いずれかのロケーターの最初の一致要素が可視かを返す。

    解決フェーズと異なり、照会中の例外は読み飛ばさずにそのまま送出する。
    """
    for locator in locators:
        elements = await driver.query(locator)
        if elements and await elements[0].is_visible():
            return True
    return False


async def _count_visible(driver: BrowserDriver, locator: Locator) -> int:
    """ロケーターに一致する要素のうち可視のものを数える。"""
    count = 0
    for element in await driver.query(locator):
        if await element.is_visible():
            count += 1
    return count


def _state_word(checked: Optional[bool]) -> str:
    if checked is None:
        return "unknown"
    return "checked" if checked else "unchecked"


def _describe_toggle(observation: _ActionObservation) -> str:
    """チェック状態の変化を説明する文字列。トグルしていない場合は空文字列。"""
    if observation.checked_before is None:
        return ""
    return (
        f"checkbox {_state_word(observation.checked_before)} -> "
        f"{_state_word(observation.checked_after)}"
    )
