"""Diff Reporter - Generate structured transcript comparison results and markdown summaries."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Tuple

from src.comparison.models import DiffReport, DiffSeverity

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_RESULTS_DIR = PROJECT_ROOT / "parity-results"

MAX_OUTPUT_PREVIEW = 200


def _preview(text: str) -> str:
    flat = " ".join(text.split())
    if len(flat) <= MAX_OUTPUT_PREVIEW:
        return flat
    return flat[: MAX_OUTPUT_PREVIEW - 3] + "..."


class DiffReporter:
    """Generate structured comparison artifacts (JSON + Markdown)."""

    def __init__(self, output_dir: Path | None = None) -> None:
        self.output_dir = Path(output_dir) if output_dir is not None else DEFAULT_RESULTS_DIR
        self.output_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def build_stats(label: str, report: DiffReport) -> Dict[str, Any]:
        return {
            "label": label,
            "total_commands": report.total_commands,
            "total_differences": len(report.differences),
            "critical_differences": report.summary.critical,
            "major_differences": report.summary.major,
            "minor_differences": report.summary.minor,
            "parity_score": round(report.parity_score, 2),
            "parity_status": "PASS" if report.passed else "FAIL",
            "timestamp": datetime.now().isoformat(),
        }

    def generate_json_report(self, label: str, report: DiffReport) -> str:
        payload = {
            "metadata": {
                "label": label,
                "generated_at": datetime.now().isoformat(),
            },
            "statistics": self.build_stats(label, report),
            "report": report.to_dict(),
        }
        return json.dumps(payload, indent=2, default=str)

    def generate_markdown_summary(self, label: str, scenario: str, report: DiffReport) -> str:
        stats = self.build_stats(label, report)
        md_lines = [
            f"# Transcript Comparison: {label}",
            f"**Scenario:** {scenario}",
            f"**Generated:** {datetime.now().isoformat()}",
            f"**Reference:** `{report.transcript_a_id}`",
            f"**Model:** `{report.transcript_b_id}`",
            "",
            "## Summary",
            f"- **Compared Turns:** {report.total_commands}",
            f"- **Exact Matches:** {report.exact_matches}",
            f"- **Close Matches:** {report.close_matches}",
            f"- **Parity Score:** {stats['parity_score']:.2f}%",
            f"- **Critical:** {report.summary.critical} 🚨",
            f"- **Major:** {report.summary.major} ⚠️",
            f"- **Minor:** {report.summary.minor}",
            f"- **Parity Status:** {stats['parity_status']}",
            "",
        ]

        if report.differences:
            md_lines.append("## Detailed Differences")
            md_lines.append("")
            for entry in report.differences:
                md_lines.append(
                    f"### [{entry.index}] `{entry.command or '(initial output)'}` "
                    f"- {entry.severity.value.upper()} ({entry.category}, "
                    f"similarity {entry.similarity:.2f})"
                )
                md_lines.append(f"- **Reference:** {_preview(entry.expected) or '(missing)'}")
                md_lines.append(f"- **Model:** {_preview(entry.actual) or '(missing)'}")
                md_lines.append("")
        else:
            md_lines.append("Perfect Parity ✅")

        md_lines.extend(
            [
                "",
                "---",
                "*Generated by the transcript parity engine*",
            ]
        )

        return "\n".join(md_lines)

    def write_reports(self, label: str, scenario: str, report: DiffReport) -> Tuple[Path, Path]:
        json_report = self.generate_json_report(label, report)
        markdown_report = self.generate_markdown_summary(label, scenario, report)

        safe_label = label.replace("/", "_").replace(":", "-")
        json_path = self.output_dir / f"{safe_label}.json"
        md_path = self.output_dir / f"{safe_label}.md"

        json_path.write_text(json_report, encoding="utf-8")
        md_path.write_text(markdown_report, encoding="utf-8")

        logger.info("Wrote comparison reports for %s", label)
        logger.info("  JSON: %s", json_path)
        logger.info("  Markdown: %s", md_path)

        return json_path, md_path

    def generate_aggregate_summary(self, all_stats: List[Dict[str, Any]]) -> str:
        total_runs = len(all_stats)
        passed = sum(1 for stat in all_stats if stat["parity_status"] == "PASS")
        failed = total_runs - passed
        total_critical = sum(stat["critical_differences"] for stat in all_stats)
        total_major = sum(stat["major_differences"] for stat in all_stats)
        pass_rate = (passed / total_runs * 100) if total_runs else 100.0
        mean_parity = (
            sum(stat["parity_score"] for stat in all_stats) / total_runs if total_runs else 100.0
        )

        md_lines = [
            "# Transcript Parity - Aggregate Summary",
            f"**Generated:** {datetime.now().isoformat()}",
            "",
            "## Overall Results",
            f"- **Runs Compared:** {total_runs}",
            f"- **Passed:** {passed} ✅",
            f"- **Failed:** {failed} ❌",
            f"- **Pass Rate:** {pass_rate:.1f}%",
            f"- **Mean Parity Score:** {mean_parity:.2f}%",
            "",
            "## Difference Summary",
            f"- **Critical Differences:** {total_critical} 🚨",
            f"- **Major Differences:** {total_major} ⚠️",
            "",
            "## Detailed Results",
            "",
        ]

        for stat in sorted(all_stats, key=lambda item: item["label"]):
            status_emoji = "✅" if stat["parity_status"] == "PASS" else "❌"
            md_lines.append(
                f"{status_emoji} **{stat['label']}** (Parity: {stat['parity_score']:.2f}%, "
                f"Critical: {stat['critical_differences']}, Major: {stat['major_differences']})"
            )

        md_lines.extend(
            [
                "",
                "---",
                "*Transcript parity engine*",
            ]
        )

        return "\n".join(md_lines)

    def write_aggregate_summary(self, all_stats: List[Dict[str, Any]]) -> Path:
        summary = self.generate_aggregate_summary(all_stats)
        summary_path = self.output_dir / "SUMMARY.md"
        summary_path.write_text(summary, encoding="utf-8")
        logger.info("Wrote aggregate summary: %s", summary_path)
        return summary_path


def count_blocking_differences(report: DiffReport) -> int:
    """Differences that should block a merge (major or critical)."""
    return sum(
        1
        for entry in report.differences
        if entry.severity in (DiffSeverity.MAJOR, DiffSeverity.CRITICAL)
    )
