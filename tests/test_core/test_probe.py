"""
ProbeEngine のユニットテスト

インメモリ DOM（tests/fakes.py）を使用する。実際のブラウザは起動しない。

テスト対象:
  - 解決フェーズ: 先頭一致、不可視・無効な候補の読み飛ばし、遅延表示、照会エラー
  - アクションフェーズ: click / toggleCheckbox / typeText / drag / none、ドライバー例外
  - 検証フェーズ: containerVisible / containerHidden / checkedStateChanged / minimumCount
  - 構成エラー: 候補ロケーターが空の記述子は skipped
  - タイムアウト: 所要時間が各フェーズの期限内に収まること（応答しないドライバーを含む）
  - ensureOpen: 閉じたメニューの開き直し、開けない場合の setup 失敗
  - ドライバー障害: 照会エラーを非表示とみなさないこと
  - 組み込みバッテリーの各プローブ
"""

from __future__ import annotations

import asyncio
import time

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import FAST_INTERVAL_MS, FAST_TIMEOUT_MS
from fakes import ColumnMenuPage, FakeDriver, FakeElement
from uiprobe.battery import (
    COLUMNS_BUTTON,
    DRAG_HANDLES,
    MENU_CHECKBOXES,
    MENU_CONTAINER,
    default_battery,
)
from uiprobe.core.probe import ProbeEngine
from uiprobe.core.results import ProbeOutcome, ProbePhase
from uiprobe.dsl.schema import (
    ActionKind,
    CapabilityDescriptor,
    CheckedStateChanged,
    ContainerHidden,
    ContainerVisible,
    CssLocator,
    DragOffset,
    MinimumCount,
    NoPostCondition,
    Position,
    RoleLocator,
    TextLocator,
)


def _probes(timeout_ms: int = FAST_TIMEOUT_MS) -> dict[str, CapabilityDescriptor]:
    """組み込みバッテリーを名前で引けるようにする。"""
    return {p.name: p for p in default_battery(timeout_ms=timeout_ms).probes}


def _descriptor(**kwargs) -> CapabilityDescriptor:
    kwargs.setdefault("name", "probe")
    kwargs.setdefault("timeout_ms", FAST_TIMEOUT_MS)
    return CapabilityDescriptor(**kwargs)


# ===========================================================================
# 1. 組み込みバッテリーのシナリオ
# ===========================================================================

class TestOpenMenu:
    """open-menu プローブのテスト。"""

    async def test_menu_opens(self, engine: ProbeEngine, column_page: ColumnMenuPage) -> None:
        """Columns ボタンのクリックでメニューが開けば passed となること。"""
        verdict = await engine.probe(_probes()["open-menu"], column_page.driver, page="/orders")

        assert verdict.outcome is ProbeOutcome.PASSED
        assert verdict.capability == "open-menu"
        assert verdict.page == "/orders"
        assert verdict.matched_locator == "role='button', name='Columns'"
        assert "role='menu'" in verdict.detail
        assert column_page.menu_open
        assert column_page.button.clicks == [None]

    async def test_no_button_fails_resolution(self, engine: ProbeEngine) -> None:
        """ボタンが存在しない場合、解決フェーズの failed となること。"""
        descriptor = _probes()["open-menu"]

        start = time.perf_counter()
        verdict = await engine.probe(descriptor, FakeDriver())
        elapsed_ms = (time.perf_counter() - start) * 1000

        assert verdict.outcome is ProbeOutcome.FAILED
        assert verdict.phase is ProbePhase.RESOLUTION
        assert verdict.detail.startswith("resolution: no visible candidate for open-menu")
        assert "role='button', name='Columns': no match" in verdict.detail
        assert elapsed_ms < FAST_TIMEOUT_MS + FAST_INTERVAL_MS + 200

    async def test_menu_never_appears(self, engine: ProbeEngine) -> None:
        """クリックしてもメニューが開かない場合、事後条件の failed となること。"""
        page = ColumnMenuPage()
        page.button.on_click = None

        verdict = await engine.probe(_probes()["open-menu"], page.driver)

        assert verdict.outcome is ProbeOutcome.FAILED
        assert verdict.phase is ProbePhase.POSTCONDITION
        assert "container never became visible" in verdict.detail
        assert verdict.matched_locator == "role='button', name='Columns'"


class TestCheckboxProbes:
    """チェックボックス関連プローブのテスト。"""

    async def test_toggle_changes_state(
        self, engine: ProbeEngine, column_page: ColumnMenuPage,
    ) -> None:
        column_page.open_menu()

        verdict = await engine.probe(
            _probes()["checkbox-toggle-changes-state"], column_page.driver,
        )

        assert verdict.outcome is ProbeOutcome.PASSED
        assert "checkbox checked -> unchecked" in verdict.detail
        assert column_page.checkboxes[0].checked is False

    @pytest.mark.parametrize("initial", [True, False])
    async def test_either_direction_passes(self, engine: ProbeEngine, initial: bool) -> None:
        """チェック状態の変化は方向を問わず passed となること。"""
        page = ColumnMenuPage(checked=initial)
        page.open_menu()

        verdict = await engine.probe(_probes()["checkbox-toggle-changes-state"], page.driver)

        assert verdict.outcome is ProbeOutcome.PASSED
        assert page.checkboxes[0].checked is (not initial)

    async def test_state_unchanged_fails(
        self, engine: ProbeEngine, column_page: ColumnMenuPage,
    ) -> None:
        """クリックしてもチェック状態が変わらない場合 failed となること。"""
        column_page.open_menu()
        column_page.checkboxes[0].checkable = False

        verdict = await engine.probe(
            _probes()["checkbox-toggle-changes-state"], column_page.driver,
        )

        assert verdict.outcome is ProbeOutcome.FAILED
        assert verdict.phase is ProbePhase.POSTCONDITION
        assert "checked state stayed checked" in verdict.detail

    async def test_menu_stays_open(
        self, engine: ProbeEngine, column_page: ColumnMenuPage,
    ) -> None:
        column_page.open_menu()

        verdict = await engine.probe(
            _probes()["checkbox-toggle-keeps-menu-open"], column_page.driver,
        )

        assert verdict.outcome is ProbeOutcome.PASSED
        assert "container visible via role='menu'" in verdict.detail
        assert "checkbox checked -> unchecked" in verdict.detail

    async def test_menu_closes_on_toggle(self, engine: ProbeEngine) -> None:
        """チェックボックスのクリックでメニューが閉じる場合 failed となること。"""
        page = ColumnMenuPage(checkbox_closes_menu=True)
        page.open_menu()

        verdict = await engine.probe(
            _probes()["checkbox-toggle-keeps-menu-open"], page.driver,
        )

        assert verdict.outcome is ProbeOutcome.FAILED
        assert verdict.phase is ProbePhase.POSTCONDITION
        assert "menu closed unexpectedly" in verdict.detail

    async def test_state_change_and_menu_closing_are_independent(
        self, engine: ProbeEngine,
    ) -> None:
        """メニューが閉じても、チェック状態の変化自体は passed となること。"""
        page = ColumnMenuPage(checkbox_closes_menu=True)
        page.open_menu()

        verdict = await engine.probe(_probes()["checkbox-toggle-changes-state"], page.driver)

        assert verdict.outcome is ProbeOutcome.PASSED

    async def test_detached_after_click(self, engine: ProbeEngine) -> None:
        """クリック後に要素が外れても、再読込の失敗では action failed にならないこと。"""
        driver = FakeDriver()
        checkbox = FakeElement("cb", checkable=True)
        checkbox.on_click = lambda: setattr(checkbox, "detached", True)
        locator = CssLocator(css="input[type=checkbox]")
        driver.add(locator, checkbox)

        verdict = await engine.probe(
            _descriptor(
                candidate_locators=(locator,),
                action=ActionKind.TOGGLE_CHECKBOX,
                post_condition=CheckedStateChanged(),
            ),
            driver,
        )

        assert verdict.outcome is ProbeOutcome.FAILED
        assert verdict.phase is ProbePhase.POSTCONDITION
        assert "last error: RuntimeError" in verdict.detail


class TestDragHandles:
    """drag-handles-present プローブのテスト。"""

    async def test_present(self, engine: ProbeEngine, column_page: ColumnMenuPage) -> None:
        column_page.open_menu()

        verdict = await engine.probe(_probes()["drag-handles-present"], column_page.driver)

        assert verdict.outcome is ProbeOutcome.PASSED
        assert verdict.matched_locator == "css='.drag-handle'"
        assert all(not h.clicks for h in column_page.handles)

    async def test_absent(self, engine: ProbeEngine) -> None:
        page = ColumnMenuPage(drag_handles=0)
        page.open_menu()

        verdict = await engine.probe(_probes()["drag-handles-present"], page.driver)

        assert verdict.outcome is ProbeOutcome.FAILED
        assert verdict.phase is ProbePhase.RESOLUTION


class TestOutsideClick:
    """outside-click-closes-menu プローブのテスト。"""

    async def test_menu_closes(self, engine: ProbeEngine, column_page: ColumnMenuPage) -> None:
        column_page.open_menu()

        verdict = await engine.probe(
            _probes()["outside-click-closes-menu"], column_page.driver,
        )

        assert verdict.outcome is ProbeOutcome.PASSED
        assert "container hidden" in verdict.detail
        assert column_page.body.clicks == [(100, 100)]
        assert not column_page.menu_open

    async def test_menu_stays_open(self, engine: ProbeEngine) -> None:
        """メニュー外のクリックで閉じない場合 failed となること。"""
        page = ColumnMenuPage(outside_click_closes=False)
        page.open_menu()

        verdict = await engine.probe(_probes()["outside-click-closes-menu"], page.driver)

        assert verdict.outcome is ProbeOutcome.FAILED
        assert "container still visible" in verdict.detail


# ===========================================================================
# 2. 解決フェーズ
# ===========================================================================

class TestResolution:
    """候補ロケーターの解決のテスト。"""

    async def test_first_visible_candidate_wins(self, engine: ProbeEngine) -> None:
        """複数の候補が可視の場合、記述順で最初の候補が採用されること。"""
        driver = FakeDriver()
        first, second = TextLocator(text="A"), TextLocator(text="B")
        driver.add(first, FakeElement("a"))
        driver.add(second, FakeElement("b"))

        resolved = await engine.resolve((first, second), driver, FAST_TIMEOUT_MS)

        assert resolved is not None
        assert resolved.index == 0
        assert resolved.element.name == "a"

    async def test_invisible_candidate_is_skipped(self, engine: ProbeEngine) -> None:
        driver = FakeDriver()
        first, second = TextLocator(text="A"), TextLocator(text="B")
        driver.add(first, FakeElement("a", visible=False))
        driver.add(second, FakeElement("b"))

        resolved = await engine.resolve((first, second), driver, FAST_TIMEOUT_MS)

        assert resolved is not None
        assert resolved.index == 1
        assert resolved.description == "text='B'"

    async def test_disabled_candidate_is_skipped(self, engine: ProbeEngine) -> None:
        driver = FakeDriver()
        first, second = TextLocator(text="A"), TextLocator(text="B")
        driver.add(first, FakeElement("a", enabled=False))
        driver.add(second, FakeElement("b"))

        resolved = await engine.resolve((first, second), driver, FAST_TIMEOUT_MS)

        assert resolved is not None
        assert resolved.index == 1

    async def test_only_first_match_is_considered(self, engine: ProbeEngine) -> None:
        """候補の最初の一致が不可視なら、2 番目の一致が可視でも採用しないこと。"""
        driver = FakeDriver()
        first, second = TextLocator(text="A"), TextLocator(text="B")
        driver.add(first, FakeElement("a0", visible=False), FakeElement("a1"))
        driver.add(second, FakeElement("b"))

        resolved = await engine.resolve((first, second), driver, FAST_TIMEOUT_MS)

        assert resolved is not None
        assert resolved.element.name == "b"

    async def test_query_error_moves_to_next_candidate(self, engine: ProbeEngine) -> None:
        """照会エラーの候補は読み飛ばされ、理由に記録されること。"""
        driver = FakeDriver()
        broken, working = CssLocator(css="::bad"), CssLocator(css="button")
        driver.fail_query(broken, RuntimeError("invalid selector"))
        driver.add(working, FakeElement("button"))

        resolved = await engine.resolve((broken, working), driver, FAST_TIMEOUT_MS)

        assert resolved is not None
        assert resolved.index == 1

    async def test_query_error_reason_in_detail(self, engine: ProbeEngine) -> None:
        driver = FakeDriver()
        broken = CssLocator(css="::bad")
        driver.fail_query(broken, RuntimeError("invalid selector"))

        verdict = await engine.probe(_descriptor(candidate_locators=(broken,)), driver)

        assert verdict.outcome is ProbeOutcome.FAILED
        assert "[0] css='::bad': RuntimeError: invalid selector" in verdict.detail

    async def test_element_appears_later(self, engine: ProbeEngine) -> None:
        """期限内に遅れて可視になった要素が採用されること。"""
        driver = FakeDriver()
        locator = RoleLocator(role="button", name="Columns")
        (button,) = driver.add(locator, FakeElement("button", visible=False))

        async def reveal() -> None:
            await asyncio.sleep(0.08)
            button.visible = True

        task = asyncio.create_task(reveal())
        verdict = await engine.probe(
            _descriptor(candidate_locators=(locator,), timeout_ms=1000), driver,
        )
        await task

        assert verdict.outcome is ProbeOutcome.PASSED
        assert button.clicks == [None]

    async def test_resolve_returns_none_when_nothing_matches(
        self, engine: ProbeEngine,
    ) -> None:
        resolved = await engine.resolve((TextLocator(text="X"),), FakeDriver(), 50)
        assert resolved is None

    @given(flags=st.lists(st.booleans(), min_size=1, max_size=6).filter(any))
    @settings(max_examples=40, deadline=None)
    def test_first_match_law(self, flags: list[bool]) -> None:
        """採用される候補は、常に可視な候補のうち記述順で最初のものであること。"""
        driver = FakeDriver()
        locators = tuple(TextLocator(text=f"c{i}") for i in range(len(flags)))
        for i, (locator, visible) in enumerate(zip(locators, flags)):
            driver.add(locator, FakeElement(f"e{i}", visible=visible))

        resolved = asyncio.run(
            ProbeEngine(poll_interval_ms=FAST_INTERVAL_MS).resolve(locators, driver, 100)
        )

        assert resolved is not None
        assert resolved.index == flags.index(True)


# ===========================================================================
# 3. アクションフェーズ
# ===========================================================================

class TestAction:
    """アクション実行のテスト。"""

    async def test_click_error_becomes_action_failure(self, engine: ProbeEngine) -> None:
        """クリック中のドライバー例外は action フェーズの failed に変換されること。"""
        driver = FakeDriver()
        locator = TextLocator(text="Columns")
        driver.add(locator, FakeElement("b", click_error=TimeoutError("intercepted")))

        verdict = await engine.probe(_descriptor(candidate_locators=(locator,)), driver)

        assert verdict.outcome is ProbeOutcome.FAILED
        assert verdict.phase is ProbePhase.ACTION
        assert verdict.detail == (
            "action: click on text='Columns' failed: TimeoutError: intercepted"
        )

    async def test_click_with_position(self, engine: ProbeEngine) -> None:
        driver = FakeDriver()
        locator = CssLocator(css="body")
        (body,) = driver.add(locator, FakeElement("body"))

        await engine.probe(
            _descriptor(candidate_locators=(locator,), position=Position(x=5, y=7)), driver,
        )

        assert body.clicks == [(5, 7)]

    async def test_type_text(self, engine: ProbeEngine) -> None:
        driver = FakeDriver()
        locator = CssLocator(css="input")
        (field,) = driver.add(locator, FakeElement("input"))

        verdict = await engine.probe(
            _descriptor(
                candidate_locators=(locator,), action=ActionKind.TYPE_TEXT, text="hello",
            ),
            driver,
        )

        assert verdict.outcome is ProbeOutcome.PASSED
        assert field.text == "hello"

    async def test_none_action_does_not_click(self, engine: ProbeEngine) -> None:
        driver = FakeDriver()
        locator = CssLocator(css=".grip")
        (grip,) = driver.add(locator, FakeElement("grip"))

        verdict = await engine.probe(
            _descriptor(candidate_locators=(locator,), action=ActionKind.NONE), driver,
        )

        assert verdict.outcome is ProbeOutcome.PASSED
        assert verdict.detail == "matched css='.grip'"
        assert grip.clicks == []


# ===========================================================================
# 4. 構成エラー・タイムアウト・冪等性
# ===========================================================================

class TestProbeContract:
    """プローブ全体の振る舞いのテスト。"""

    async def test_empty_locators_are_skipped(self, engine: ProbeEngine) -> None:
        """候補ロケーターが空の場合 skipped となり、ドライバーを照会しないこと。"""
        driver = FakeDriver()

        verdict = await engine.probe(_descriptor(candidate_locators=()), driver)

        assert verdict.outcome is ProbeOutcome.SKIPPED
        assert verdict.phase is ProbePhase.CONFIGURATION
        assert "no locators configured" in verdict.detail
        assert driver.queries == []

    async def test_postcondition_timeout_is_bounded(self, engine: ProbeEngine) -> None:
        """事後条件が成立しない場合、所要時間が期限 + 1 回分を大きく超えないこと。"""
        driver = FakeDriver()
        locator = TextLocator(text="Columns")
        driver.add(locator, FakeElement("b"))
        descriptor = _descriptor(
            candidate_locators=(locator,),
            post_condition=ContainerVisible(locators=MENU_CONTAINER),
        )

        verdict = await engine.probe(descriptor, driver)

        assert verdict.outcome is ProbeOutcome.FAILED
        assert verdict.duration_ms >= FAST_TIMEOUT_MS
        assert verdict.duration_ms < FAST_TIMEOUT_MS + FAST_INTERVAL_MS + 200

    async def test_failure_detail_names_phase(self, engine: ProbeEngine) -> None:
        """失敗 verdict の detail は必ずフェーズ名で始まること。"""
        page = ColumnMenuPage(outside_click_closes=False)
        page.open_menu()
        descriptor = _descriptor(
            candidate_locators=(CssLocator(css="body"),),
            post_condition=ContainerHidden(
                locators=(RoleLocator(role="menu"),), failure_detail="menu did not close",
            ),
        )

        verdict = await engine.probe(descriptor, page.driver)

        assert verdict.detail.startswith("postcondition: menu did not close")

    async def test_probe_is_repeatable(
        self, engine: ProbeEngine, column_page: ColumnMenuPage,
    ) -> None:
        """同じページ状態に対する同じプローブは同じ結果となること。"""
        descriptor = _probes()["open-menu"]

        first = await engine.probe(descriptor, column_page.driver)
        second = await engine.probe(descriptor, column_page.driver)

        assert first.outcome is second.outcome is ProbeOutcome.PASSED
        assert first.detail == second.detail

    async def test_no_postcondition_passes(self, engine: ProbeEngine) -> None:
        driver = FakeDriver()
        locator = TextLocator(text="Columns")
        driver.add(locator, FakeElement("b"))

        verdict = await engine.probe(
            _descriptor(candidate_locators=(locator,), post_condition=NoPostCondition()),
            driver,
        )

        assert verdict.passed

    @pytest.mark.parametrize("interval", [0, -1])
    def test_invalid_poll_interval(self, interval: int) -> None:
        with pytest.raises(ValueError):
            ProbeEngine(poll_interval_ms=interval)


# ===========================================================================
# 5. drag アクションと minimumCount 事後条件
# ===========================================================================

class TestDragAndCount:
    """drag アクションと minimumCount 事後条件のテスト。"""

    async def test_drag_handle(self, engine: ProbeEngine, column_page: ColumnMenuPage) -> None:
        """ドラッグハンドルを指定の移動量でドラッグできること。"""
        column_page.open_menu()
        descriptor = _descriptor(
            candidate_locators=DRAG_HANDLES,
            action=ActionKind.DRAG,
            drag_offset=DragOffset(dy=40),
            post_condition=ContainerVisible(locators=MENU_CONTAINER),
        )

        verdict = await engine.probe(descriptor, column_page.driver)

        assert verdict.outcome is ProbeOutcome.PASSED
        assert column_page.handles[0].drags == [(0, 40)]

    async def test_drag_error_is_action_failure(self, engine: ProbeEngine) -> None:
        driver = FakeDriver()
        locator = CssLocator(css=".grip")
        driver.add(locator, FakeElement("grip", click_error=RuntimeError("no bounding box")))

        verdict = await engine.probe(
            _descriptor(
                candidate_locators=(locator,),
                action=ActionKind.DRAG,
                drag_offset=DragOffset(dx=10),
            ),
            driver,
        )

        assert verdict.phase is ProbePhase.ACTION
        assert verdict.detail.startswith("action: drag on css='.grip' failed")

    async def test_minimum_count_satisfied(
        self, engine: ProbeEngine, column_page: ColumnMenuPage,
    ) -> None:
        """ボタンのクリック後、チェックボックスが 5 個以上表示されれば passed となること。"""
        descriptor = _descriptor(
            candidate_locators=COLUMNS_BUTTON,
            post_condition=MinimumCount(locators=MENU_CHECKBOXES, count=5),
        )

        verdict = await engine.probe(descriptor, column_page.driver)

        assert verdict.outcome is ProbeOutcome.PASSED
        assert "5 visible via css='[role=\"menu\"] [role=\"menuitemcheckbox\"]'" in verdict.detail

    async def test_minimum_count_not_reached(self, engine: ProbeEngine) -> None:
        page = ColumnMenuPage(checkboxes=1)
        descriptor = _descriptor(
            candidate_locators=COLUMNS_BUTTON,
            post_condition=MinimumCount(locators=MENU_CHECKBOXES, count=2),
        )

        verdict = await engine.probe(descriptor, page.driver)

        assert verdict.outcome is ProbeOutcome.FAILED
        assert "expected at least 2 visible elements, found 1" in verdict.detail

    async def test_minimum_count_ignores_hidden(self, engine: ProbeEngine) -> None:
        """非表示の一致要素は数えないこと。"""
        page = ColumnMenuPage()
        page.button.on_click = None
        descriptor = _descriptor(
            candidate_locators=COLUMNS_BUTTON,
            post_condition=MinimumCount(locators=MENU_CHECKBOXES),
        )

        verdict = await engine.probe(descriptor, page.driver)

        assert verdict.outcome is ProbeOutcome.FAILED
        assert "found 0" in verdict.detail

    async def test_minimum_count_skips_failing_locator(self, engine: ProbeEngine) -> None:
        """照会エラーの候補は読み飛ばし、後続の候補で件数を数えること。"""
        driver = FakeDriver()
        trigger = TextLocator(text="Reorder")
        broken, handles = CssLocator(css=".bad"), CssLocator(css=".drag-handle")
        driver.add(trigger, FakeElement("reorder"))
        driver.fail_query(broken, RuntimeError("boom"))
        driver.add(handles, FakeElement("h0"), FakeElement("h1"))

        verdict = await engine.probe(
            _descriptor(
                candidate_locators=(trigger,),
                post_condition=MinimumCount(locators=(broken, handles), count=2),
            ),
            driver,
        )

        assert verdict.outcome is ProbeOutcome.PASSED
        assert "2 visible via css='.drag-handle'" in verdict.detail

    async def test_minimum_count_reports_query_error(self, engine: ProbeEngine) -> None:
        driver = FakeDriver()
        trigger, broken = TextLocator(text="Reorder"), CssLocator(css=".bad")
        driver.add(trigger, FakeElement("reorder"))
        driver.fail_query(broken, RuntimeError("boom"))

        verdict = await engine.probe(
            _descriptor(
                candidate_locators=(trigger,),
                post_condition=MinimumCount(locators=(broken,), count=1),
            ),
            driver,
        )

        assert verdict.outcome is ProbeOutcome.FAILED
        assert "last error: css='.bad': RuntimeError: boom" in verdict.detail


# ===========================================================================
# 6. ensureOpen 前提条件
# ===========================================================================

class TestEnsureOpen:
    """メニューを開いてから解決する前提条件のテスト。"""

    async def test_reopens_closed_menu(self, engine: ProbeEngine) -> None:
        """メニューが閉じていれば Columns ボタンで開き直してから評価すること。"""
        page = ColumnMenuPage()

        verdict = await engine.probe(_probes()["drag-handles-present"], page.driver)

        assert verdict.outcome is ProbeOutcome.PASSED
        assert page.button.clicks == [None]
        assert page.menu_open

    async def test_open_menu_is_left_alone(
        self, engine: ProbeEngine, column_page: ColumnMenuPage,
    ) -> None:
        column_page.open_menu()

        verdict = await engine.probe(_probes()["drag-handles-present"], column_page.driver)

        assert verdict.outcome is ProbeOutcome.PASSED
        assert column_page.button.clicks == []

    async def test_reopened_menu_closing_is_reported(self, engine: ProbeEngine) -> None:
        """開き直したメニューがチェックボックスのクリックで閉じた場合、事後条件の失敗となること。"""
        page = ColumnMenuPage(checkbox_closes_menu=True)

        verdict = await engine.probe(
            _probes()["checkbox-toggle-keeps-menu-open"], page.driver,
        )

        assert verdict.outcome is ProbeOutcome.FAILED
        assert verdict.phase is ProbePhase.POSTCONDITION
        assert "menu closed unexpectedly" in verdict.detail

    async def test_menu_that_never_opens(self, engine: ProbeEngine) -> None:
        page = ColumnMenuPage()
        page.button.on_click = None

        verdict = await engine.probe(_probes()["drag-handles-present"], page.driver)

        assert verdict.outcome is ProbeOutcome.FAILED
        assert verdict.phase is ProbePhase.SETUP
        assert verdict.detail.startswith("setup: container did not open")

    async def test_missing_trigger(self, engine: ProbeEngine) -> None:
        driver = FakeDriver()
        driver.add(DRAG_HANDLES[1], FakeElement("handle"))

        verdict = await engine.probe(_probes()["drag-handles-present"], driver)

        assert verdict.phase is ProbePhase.SETUP
        assert verdict.detail.startswith("setup: no visible trigger")
        assert "role='button', name='Columns': no match" in verdict.detail


# ===========================================================================
# 7. ドライバー障害・応答遅延
# ===========================================================================

class TestDriverFaults:
    """事後条件の評価中にドライバーが壊れた・遅い場合のテスト。"""

    @staticmethod
    def _break_menu_queries(page: ColumnMenuPage) -> None:
        for locator in MENU_CONTAINER:
            page.driver.fail_query(
                locator, RuntimeError("Target page, context or browser has been closed"),
            )

    async def test_hidden_check_does_not_pass_on_driver_fault(self, engine: ProbeEngine) -> None:
        """コンテナの照会が失敗する場合、非表示とみなさず failed となること。"""
        page = ColumnMenuPage(outside_click_closes=False)
        page.open_menu()
        self._break_menu_queries(page)
        descriptor = _descriptor(
            candidate_locators=(CssLocator(css="body"),),
            position=Position(x=100, y=100),
            post_condition=ContainerHidden(locators=MENU_CONTAINER),
        )

        verdict = await engine.probe(descriptor, page.driver)

        assert page.menu_open
        assert verdict.outcome is ProbeOutcome.FAILED
        assert verdict.phase is ProbePhase.POSTCONDITION
        assert "last error: RuntimeError: Target page, context or browser has been closed" in (
            verdict.detail
        )

    async def test_visible_check_reports_driver_fault(self, engine: ProbeEngine) -> None:
        page = ColumnMenuPage()
        self._break_menu_queries(page)

        verdict = await engine.probe(_probes()["open-menu"], page.driver)

        assert verdict.outcome is ProbeOutcome.FAILED
        assert verdict.phase is ProbePhase.POSTCONDITION
        assert "[0] role='menu': RuntimeError: Target page" in verdict.detail

    async def test_slow_state_read_is_bounded(self, engine: ProbeEngine) -> None:
        """クリック後の状態読み取りが応答しなくても、期限 + 1 回分の間隔で failed となること。"""
        page = ColumnMenuPage()
        page.open_menu()
        checkbox = page.checkboxes[0]
        checkbox.on_click = lambda: setattr(checkbox, "read_delay", 5.0)

        verdict = await engine.probe(
            _probes()["checkbox-toggle-changes-state"], page.driver,
        )

        assert verdict.outcome is ProbeOutcome.FAILED
        assert verdict.phase is ProbePhase.POSTCONDITION
        assert "last error: TimeoutError" in verdict.detail
        assert verdict.duration_ms < FAST_TIMEOUT_MS + FAST_INTERVAL_MS + 200
