"""
CLI エントリポイント — Typer ベースのコマンドラインインターフェース

uiprobe コマンドとして以下のサブコマンドを提供する:
  - run: ベース URL とページ一覧に対してバッテリーを実行
  - list-probes: バッテリーのプローブ一覧
  - validate: バッテリー YAML のスキーマ検証
  - init: バッテリー YAML の雛形生成
  - report: report.json から HTML レポートを再生成
  - check: 接続確認（遷移してタイトルと URL を表示）
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from .dsl.schema import Battery

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "uiprobe — UI ケイパビリティプローブ\n\n"
        "基本の流れ:\n"
        "  1. uiprobe init                    battery.yaml を生成（任意）\n"
        "  2. uiprobe run URL /orders /data   各ページでバッテリーを実行\n\n"
        "詳しくは各コマンドに --help を付けてください。"
    ),
    no_args_is_help=True,
)

_OUTCOME_LABELS = {"passed": "PASS", "failed": "FAIL", "skipped": "SKIP"}


# ---------------------------------------------------------------------------
# run コマンド
# ---------------------------------------------------------------------------

@app.command()
def run(
    base_url: str = typer.Argument(..., help="対象アプリケーションのベース URL"),
    pages: Optional[List[str]] = typer.Argument(
        None, help="訪問するページパス（実行順、省略時: /）",
    ),
    battery_file: Optional[Path] = typer.Option(
        None, "--battery", "-b", help="バッテリー YAML（省略時: 組み込みの列管理バッテリー）",
    ),
    headed: Optional[bool] = typer.Option(
        None, "--headed/--headless", help="ブラウザ表示モード（デフォルト: 非表示）",
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", min=1, help="並列セッション数（ページ単位）",
    ),
    timeout_ms: Optional[int] = typer.Option(
        None, "--timeout-ms", min=1, help="全プローブのタイムアウト（ミリ秒）",
    ),
    poll_interval_ms: Optional[int] = typer.Option(
        None, "--poll-interval-ms", min=1, help="ポーリング間隔（ミリ秒）",
    ),
    artifacts_dir: Optional[str] = typer.Option(
        None, "--artifacts-dir", help="成果物ディレクトリ",
    ),
    screenshots: Optional[str] = typer.Option(
        None, "--screenshots", help="失敗時スクリーンショット（on_failure / none）",
    ),
    html: bool = typer.Option(False, "--html", help="HTML レポートも生成する"),
    junit: bool = typer.Option(False, "--junit", help="JUnit XML レポートも生成する"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="詳細ログを出力する"),
) -> None:
    """各ページでバッテリーを実行する。全プローブが passed なら終了コード 0。"""
    import asyncio

    from .config import apply_overrides, load_config_from_env
    from .core.artifacts import ArtifactsManager
    from .core.probe import ProbeEngine
    from .core.reporting import Reporter
    from .core.results import ProbeRun
    from .core.session import SessionRunner

    _setup_logging(verbose)

    if screenshots is not None and screenshots not in ("on_failure", "none"):
        typer.echo(f"エラー: --screenshots は on_failure / none を指定してください: {screenshots}", err=True)
        raise typer.Exit(code=1)

    try:
        config = apply_overrides(
            load_config_from_env(),
            headed=headed,
            workers=workers,
            timeout_ms=timeout_ms,
            poll_interval_ms=poll_interval_ms,
            artifacts_dir=artifacts_dir,
            screenshot_mode=screenshots,
        )
        battery = _load_battery(battery_file)
        if config.timeout_ms is not None:
            battery = battery.with_timeout(config.timeout_ms)
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    page_list = list(pages) if pages else ["/"]
    artifacts = ArtifactsManager(base_dir=Path(config.artifacts_dir))
    run_dir = artifacts.create_run_dir()

    engine = ProbeEngine(poll_interval_ms=config.poll_interval_ms)
    runner = SessionRunner(engine, config, artifacts)
    probe_run = ProbeRun(base_url=base_url)

    try:
        asyncio.run(runner.run(base_url, page_list, battery.probes, run=probe_run))
    finally:
        # 中断された実行でもレポートは必ず書き出す
        probe_run.finish()
        reporter = Reporter()
        report_path = reporter.generate_json(probe_run, run_dir)
        if html:
            reporter.generate_html(probe_run, run_dir)
        if junit:
            reporter.generate_junit_xml(probe_run, run_dir)

    for verdict in probe_run.verdicts:
        label = _OUTCOME_LABELS[verdict.outcome.value]
        page = verdict.page or "-"
        typer.echo(f"[{label}] {page} :: {verdict.capability}: {verdict.detail}")

    summary = probe_run.summary()
    typer.echo(
        f"\n合計: {len(probe_run.verdicts)} "
        f"(passed={summary['passed']}, failed={summary['failed']}, "
        f"skipped={summary['skipped']})"
    )
    if probe_run.aborted:
        typer.echo(f"実行が中断されました: {probe_run.aborted}", err=True)
    typer.echo(f"レポート: {report_path}")

    if not probe_run.all_passed:
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# list-probes コマンド
# ---------------------------------------------------------------------------

@app.command("list-probes")
def list_probes(
    battery_file: Optional[Path] = typer.Option(
        None, "--battery", "-b", help="バッテリー YAML（省略時: 組み込みバッテリー）",
    ),
) -> None:
    """バッテリーのプローブ一覧を実行順に表示する。"""
    try:
        battery = _load_battery(battery_file)
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"[{battery.title}]")
    for idx, probe in enumerate(battery.probes, start=1):
        typer.echo(
            f"  {idx}. {probe.name:34s} action={probe.action.value:15s} "
            f"post={probe.post_condition.kind:20s} "
            f"locators={len(probe.candidate_locators)}"
        )
        if probe.description:
            typer.echo(f"     {probe.description}")

    typer.echo(f"\n合計: {len(battery.probes)} プローブ")


# ---------------------------------------------------------------------------
# validate コマンド
# ---------------------------------------------------------------------------

@app.command()
def validate(
    yaml_file: Path = typer.Argument(..., help="検証するバッテリー YAML"),
) -> None:
    """バッテリー YAML のスキーマ検証を行う。"""
    from .dsl.parser import BatteryParser

    errors = BatteryParser().validate(yaml_file)

    if not errors:
        typer.echo(f"✓ {yaml_file}: スキーマ検証 OK")
        return

    for err in errors:
        line_info = f" (行 {err.line})" if err.line else ""
        typer.echo(f"✗ {err.location}{line_info}: {err.message}", err=True)
    raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# init コマンド
# ---------------------------------------------------------------------------

@app.command()
def init(
    project_dir: Path = typer.Argument(
        Path("."), help="出力先ディレクトリ（デフォルト: カレント）",
    ),
) -> None:
    """組み込みバッテリーを battery.yaml として書き出す（既存ファイルは上書きしない）。"""
    from .battery import default_battery
    from .dsl.parser import BatteryParser

    try:
        battery_path = project_dir / "battery.yaml"
        if battery_path.exists():
            typer.echo(f"既に存在するためスキップしました: {battery_path}")
            return

        BatteryParser().dump(default_battery(), battery_path)
        typer.echo(f"バッテリーを生成しました: {battery_path.resolve()}")
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# report コマンド
# ---------------------------------------------------------------------------

@app.command()
def report(
    artifacts_dir: Path = typer.Argument(..., help="report.json を含む実行ディレクトリ"),
) -> None:
    """既存の report.json から HTML レポートを再生成する。"""
    from .core.reporting import Reporter

    try:
        report_json_path = artifacts_dir / "report.json"
        if not report_json_path.exists():
            typer.echo(f"エラー: {report_json_path} が見つかりません", err=True)
            raise typer.Exit(code=1)

        reporter = Reporter()
        probe_run = reporter.load_json(report_json_path)
        html_path = reporter.generate_html(probe_run, artifacts_dir)
        typer.echo(f"HTML レポートを生成しました: {html_path}")
    except typer.Exit:
        raise
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# check コマンド
# ---------------------------------------------------------------------------

@app.command()
def check(
    url: str = typer.Argument(..., help="接続確認する URL"),
    headed: Optional[bool] = typer.Option(
        None, "--headed/--headless", help="ブラウザ表示モード",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="詳細ログを出力する"),
) -> None:
    """URL に遷移できるか確認し、ページタイトルと最終 URL を表示する。"""
    import asyncio

    from .config import apply_overrides, load_config_from_env
    from .core.session import check_connection

    _setup_logging(verbose)

    try:
        config = apply_overrides(load_config_from_env(), headed=headed)
        title, final_url = asyncio.run(check_connection(url, config))
    except Exception as exc:
        typer.echo(f"✗ 接続に失敗しました: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"✓ 接続成功: {url}")
    typer.echo(f"  タイトル: {title}")
    typer.echo(f"  URL: {final_url}")


# ---------------------------------------------------------------------------
# ヘルパー関数
# ---------------------------------------------------------------------------

def _load_battery(battery_file: Optional[Path]) -> Battery:
    """バッテリー YAML を読み込む。未指定の場合は組み込みバッテリーを返す。"""
    if battery_file is None:
        from .battery import default_battery

        return default_battery()

    from .dsl.parser import BatteryParser

    return BatteryParser().load(battery_file)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
