"""
Reporter — プローブ実行レポートの生成

ProbeRun を受け取り、JSON / HTML / JUnit XML 形式のレポートを生成する。

主な機能:
  - generate_json(): フラットな JSON レポート（report.json）
      {timestamp, base_url, aborted, verdicts: [...], summary: {passed, failed, skipped}}
  - generate_html(): Jinja2 テンプレートを使用した HTML レポート（report.html）
  - generate_junit_xml(): JUnit XML レポート（junit.xml、CI 統合用）
  - load_json(): report.json から ProbeRun を再構築
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader

from .results import ProbeOutcome, ProbeRun, ProbeVerdict

logger = logging.getLogger(__name__)

# テンプレートディレクトリのパス
_TEMPLATES_DIR = Path(__file__).parent.parent / "templates"


class Reporter:
    """プローブ実行レポートの生成クラス。"""

    # -------------------------------------------------------------------
    # JSON レポート
    # -------------------------------------------------------------------

    def generate_json(self, run: ProbeRun, output_dir: Path) -> Path:
        """JSON レポートを生成し、report.json のパスを返す。"""
        output_dir.mkdir(parents=True, exist_ok=True)

        output_path = output_dir / "report.json"
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(
                self.build_report_dict(run, output_dir), f, ensure_ascii=False, indent=2,
            )

        logger.info("JSON レポートを生成しました: %s", output_path)
        return output_path

    def load_json(self, path: Path) -> ProbeRun:
        """report.json を読み込み、ProbeRun を再構築する。

        Raises:
            FileNotFoundError: ファイルが存在しない場合
            ValueError: JSON として不正な場合
        """
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"report.json の形式が不正です: {e}") from e

        started = data.get("timestamp")
        finished = data.get("finished_at")
        return ProbeRun(
            base_url=data.get("base_url", ""),
            verdicts=[ProbeVerdict.from_dict(v) for v in data.get("verdicts", [])],
            started_at=datetime.fromisoformat(started) if started else datetime.now(),
            finished_at=datetime.fromisoformat(finished) if finished else None,
            aborted=data.get("aborted"),
        )

    # -------------------------------------------------------------------
    # HTML レポート
    # -------------------------------------------------------------------

    def generate_html(self, run: ProbeRun, output_dir: Path) -> Path:
        """Jinja2 テンプレート（templates/report.html.j2）で HTML レポートを生成する。"""
        output_dir.mkdir(parents=True, exist_ok=True)

        env = Environment(
            loader=FileSystemLoader(str(_TEMPLATES_DIR)),
            autoescape=True,
        )
        template = env.get_template("report.html.j2")
        html_content = template.render(report=self.build_report_dict(run, output_dir))

        output_path = output_dir / "report.html"
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(html_content)

        logger.info("HTML レポートを生成しました: %s", output_path)
        return output_path

    # -------------------------------------------------------------------
    # JUnit XML レポート
    # -------------------------------------------------------------------

    def generate_junit_xml(self, run: ProbeRun, output_dir: Path) -> Path:
        """JUnit XML レポートを生成する。

        ページを testsuite、プローブを testcase として出力する。
        """
        output_dir.mkdir(parents=True, exist_ok=True)

        testsuites = ET.Element("testsuites")
        suites: dict[str, ET.Element] = {}

        for verdict in run.verdicts:
            suite_name = verdict.page or "run"
            suite = suites.get(suite_name)
            if suite is None:
                suite = ET.SubElement(testsuites, "testsuite")
                suite.set("name", suite_name)
                suites[suite_name] = suite

            testcase = ET.SubElement(suite, "testcase")
            testcase.set("name", verdict.capability)
            testcase.set("classname", suite_name)
            testcase.set("time", f"{verdict.duration_ms / 1000:.3f}")

            if verdict.outcome is ProbeOutcome.FAILED:
                failure = ET.SubElement(testcase, "failure")
                failure.set("message", verdict.detail)
                failure.text = verdict.detail
            elif verdict.outcome is ProbeOutcome.SKIPPED:
                skipped = ET.SubElement(testcase, "skipped")
                skipped.set("message", verdict.detail)

        for suite in suites.values():
            cases = suite.findall("testcase")
            suite.set("tests", str(len(cases)))
            suite.set("failures", str(sum(1 for c in cases if c.find("failure") is not None)))
            suite.set("skipped", str(sum(1 for c in cases if c.find("skipped") is not None)))

        tree = ET.ElementTree(testsuites)
        output_path = output_dir / "junit.xml"
        ET.indent(tree, space="  ")
        tree.write(str(output_path), encoding="unicode", xml_declaration=True)

        logger.info("JUnit XML レポートを生成しました: %s", output_path)
        return output_path

    # -------------------------------------------------------------------
    # 内部ヘルパー
    # -------------------------------------------------------------------

    def build_report_dict(
        self, run: ProbeRun, output_dir: Optional[Path] = None
    ) -> dict[str, Any]:
        """ProbeRun をレポート用のフラットな辞書に変換する。

        スクリーンショットパスは output_dir からの相対パスに変換する。
        """
        verdicts = []
        for verdict in run.verdicts:
            data = verdict.to_dict()
            data["screenshot_path"] = _relative_path(verdict.screenshot_path, output_dir)
            verdicts.append(data)

        return {
            "timestamp": run.started_at.isoformat(),
            "finished_at": run.finished_at.isoformat() if run.finished_at else None,
            "base_url": run.base_url,
            "aborted": run.aborted,
            "verdicts": verdicts,
            "summary": run.summary(),
        }


def _relative_path(path: Optional[Path], base: Optional[Path]) -> Optional[str]:
    if path is None:
        return None
    if base is not None:
        try:
            return path.relative_to(base).as_posix()
        except ValueError:
            pass
    return path.as_posix()
