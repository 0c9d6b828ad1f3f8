"""
待機戦略 — 間隔と期限を明示したポーリングループ

UI の非同期描画（メニューやポップオーバーのアニメーション）を待つため、
固定間隔でチェック関数を評価し、期限までに成立しなければ不成立を返す。

タイムアウトは例外ではなく PollResult.satisfied=False で表現する。
各チェックは残り時間で打ち切るため、ドライバーの応答が遅い場合でも
所要時間は timeout_ms + 1 回分のポーリング間隔を大きく超えない。
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 100


@dataclass(frozen=True)
class PollResult:
    """ポーリング結果。

    Attributes:
        satisfied: 期限内に条件が成立したか
        value: 成立時のチェック関数の戻り値（不成立時は None）
        attempts: チェック関数の評価回数
        elapsed_ms: 経過時間（ミリ秒）
        last_error: 最後に発生したチェック中の例外（"型名: メッセージ" 形式）
    """

    satisfied: bool
    value: Any = None
    attempts: int = 0
    elapsed_ms: float = 0.0
    last_error: Optional[str] = None


async def poll_until(
    check: Callable[[], Awaitable[Any]],
    timeout_ms: int,
    interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
) -> PollResult:
    """check が truthy な値を返すまでポーリングする。

    チェックは少なくとも 1 回評価される。評価の間は
    min(interval_ms, 残り時間) だけ待機し、イベントループに制御を返す。
    check が例外を送出した場合、または残り時間内に戻らなかった場合は
    DEBUG ログに記録して不成立の試行として扱う。

    Args:
        check: 評価する非同期関数（truthy な値で成立）
        timeout_ms: タイムアウト（ミリ秒）
        interval_ms: ポーリング間隔（ミリ秒、デフォルト: 100）

    Returns:
        ポーリング結果
    """
    if interval_ms <= 0:
        raise ValueError(f"interval_ms は正の値を指定してください: {interval_ms}")

    start = time.perf_counter()
    deadline_sec = max(timeout_ms, 0) / 1000.0
    interval_sec = interval_ms / 1000.0
    attempts = 0
    last_error: Optional[str] = None

    while True:
        attempts += 1
        remaining = deadline_sec - (time.perf_counter() - start)
        # 1 回のチェックは残り時間で打ち切る（最低でもポーリング間隔 1 回分）
        attempt_budget = max(remaining, interval_sec)
        try:
            value = await asyncio.wait_for(check(), timeout=attempt_budget)
            if value:
                elapsed = time.perf_counter() - start
                logger.debug(
                    "条件が成立しました（%d 回目, %.0fms 経過）", attempts, elapsed * 1000,
                )
                return PollResult(
                    satisfied=True,
                    value=value,
                    attempts=attempts,
                    elapsed_ms=elapsed * 1000,
                    last_error=last_error,
                )
        except asyncio.TimeoutError:
            last_error = f"TimeoutError: check did not return within {attempt_budget * 1000:.0f}ms"
            logger.debug("ポーリング中にエラー: %s", last_error)
        except Exception as exc:
            last_error = f"{type(exc).__name__}: {exc}"
            logger.debug("ポーリング中にエラー: %s", last_error)

        elapsed = time.perf_counter() - start
        remaining = deadline_sec - elapsed
        if remaining <= 0:
            return PollResult(
                satisfied=False,
                attempts=attempts,
                elapsed_ms=elapsed * 1000,
                last_error=last_error,
            )

        await asyncio.sleep(min(interval_sec, remaining))
