"""Spot Test Reporter - text, Markdown, JSON and CSV renderings of a SpotTestResult."""

from __future__ import annotations

import csv
import io
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List

from src.analysis.models import CommandDifference, IssueSeverity
from src.spot_testing.models import SpotTestResult

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("text", "json", "markdown", "csv")
FILE_EXTENSIONS = {"text": "txt", "json": "json", "markdown": "md", "csv": "csv"}

PREVIEW_CHARS = 100
MAX_MARKDOWN_SAMPLES = 5
MAX_SAMPLES_PER_SEVERITY = 3
RULE = "=" * 60
SUBRULE = "-" * 20

SEVERITY_ICONS = {
    IssueSeverity.CRITICAL: "🚨",
    IssueSeverity.HIGH: "⚠️",
    IssueSeverity.MEDIUM: "🔶",
    IssueSeverity.LOW: "ℹ️",
}
SEVERITY_ORDER = (
    IssueSeverity.CRITICAL,
    IssueSeverity.HIGH,
    IssueSeverity.MEDIUM,
    IssueSeverity.LOW,
)


def _preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[:limit] + "..."


def _label(value: str) -> str:
    return value.replace("_", " ")


class SpotTestReporter:
    """Renders spot-test results for terminals, CI artifacts and spreadsheets."""

    def __init__(self, threshold: float = 95.0) -> None:
        self.threshold = threshold

    def status_line(self, result: SpotTestResult) -> str:
        if not result.reference_available:
            status = "⚠️  MODEL ONLY"
        elif result.passed(self.threshold):
            status = "✅ PASSED"
        else:
            status = "❌ FAILED"
        return (
            f"{status} | Parity: {result.parity_score:.2f}% | "
            f"Time: {result.execution_time_ms:.0f}ms | "
            f"Issues: {len(result.differences)}/{result.total_commands}"
        )

    def render(self, result: SpotTestResult, output_format: str = "text") -> str:
        renderers = {
            "text": self.generate_text_report,
            "json": self.generate_json_report,
            "markdown": self.generate_markdown_report,
            "csv": self.generate_csv_report,
        }
        if output_format not in renderers:
            raise ValueError(
                f"Unknown output format {output_format!r}; expected one of {', '.join(OUTPUT_FORMATS)}"
            )
        return renderers[output_format](result)

    def generate_text_report(self, result: SpotTestResult) -> str:
        lines = [
            RULE,
            "SPOT TEST PARITY REPORT",
            RULE,
            "",
            "SUMMARY",
            SUBRULE,
            f"Seed: {result.seed}",
            f"Total Commands Executed: {result.total_commands}",
            f"Parity Score: {result.parity_score:.2f}% (threshold {self.threshold:.1f}%)",
            f"Execution Time: {result.execution_time_ms:.0f}ms",
            f"Differences Found: {len(result.differences)}",
            f"Overall Severity: {result.analysis.overall_severity.value.upper()}",
            "",
        ]

        for warning in result.warnings:
            lines.append(f"WARNING: {warning}")
        if result.warnings:
            lines.append("")

        lines.extend(["RECOMMENDATION", SUBRULE])
        if result.recommend_deep_analysis:
            lines.append("⚠️  DEEPER ANALYSIS RECOMMENDED")
            lines.append("   Issues detected that warrant comprehensive testing.")
        else:
            lines.append("✅ NO DEEP ANALYSIS NEEDED")
            lines.append("   No significant issues detected in this sample.")
        lines.append("")

        if result.issue_patterns:
            lines.extend(["ISSUE PATTERNS", SUBRULE])
            for pattern in result.issue_patterns:
                lines.append(f"{SEVERITY_ICONS[pattern.severity]} {pattern.description}")
                lines.append(f"   Frequency: {pattern.frequency} occurrences")
                lines.append(f"   Sample commands: {', '.join(pattern.sample_commands[:2])}")
                lines.append("")

        if result.differences:
            lines.extend(["DETAILED DIFFERENCES", SUBRULE])
            by_severity = self.group_by_severity(result.differences)
            for severity in SEVERITY_ORDER:
                diffs = by_severity.get(severity, [])
                if not diffs:
                    continue
                lines.append(
                    f"{SEVERITY_ICONS[severity]} {severity.value.upper()} ISSUES ({len(diffs)})"
                )
                for diff in diffs[:MAX_SAMPLES_PER_SEVERITY]:
                    lines.append(f"   Command {diff.command_index}: {diff.command}")
                    lines.append(f"   Type: {_label(diff.difference_type.value)}")
                    lines.append(f"   Model: {_preview(diff.model_output)}")
                    lines.append(f"   Reference: {_preview(diff.reference_output)}")
                    lines.append("")
                hidden = len(diffs) - MAX_SAMPLES_PER_SEVERITY
                if hidden > 0:
                    lines.append(f"   ... and {hidden} more {severity.value} issues")
                    lines.append("")

        if result.recommendations:
            lines.extend(["NEXT STEPS", SUBRULE])
            for record in result.recommendations:
                lines.append(f"[{record.priority.value.upper()}] {record.action}")
            lines.append("")

        if result.total_commands and result.execution_time_ms > 0:
            lines.extend(["PERFORMANCE METRICS", SUBRULE])
            per_second = result.total_commands / (result.execution_time_ms / 1000)
            lines.append(f"Commands per second: {per_second:.1f}")
            lines.append(
                f"Average time per command: {result.execution_time_ms / result.total_commands:.1f}ms"
            )
            lines.append("")

        lines.extend([RULE, self.status_line(result), f"Generated at: {datetime.now().isoformat()}"])
        return "\n".join(lines)

    def generate_markdown_report(self, result: SpotTestResult) -> str:
        analysis = result.analysis
        md_lines = [
            "# Spot Test Analysis Report",
            "",
            "## Summary",
            f"- **Seed:** {result.seed}",
            f"- **Total Commands:** {result.total_commands}",
            f"- **Differences Found:** {len(result.differences)}",
            f"- **Parity Score:** {result.parity_score:.2f}%",
            f"- **Overall Severity:** {analysis.overall_severity.value.upper()}",
            f"- **Deep Analysis Recommended:** {'YES' if analysis.recommend_deep_analysis else 'NO'}",
            f"- **Reference Available:** {'YES' if result.reference_available else 'NO'}",
            "",
        ]

        if analysis.patterns:
            md_lines.extend(["## Issue Patterns", ""])
            for pattern in analysis.patterns:
                md_lines.append(f"### {_label(pattern.type.value).upper()}")
                md_lines.append(f"- **Frequency:** {pattern.frequency} occurrences")
                md_lines.append(f"- **Severity:** {pattern.severity.value.upper()}")
                md_lines.append(f"- **Description:** {pattern.description}")
                if pattern.sample_commands:
                    md_lines.append("- **Sample Commands:**")
                    md_lines.extend(f"  - `{cmd}`" for cmd in pattern.sample_commands[:3])
                md_lines.append("")

        if result.differences:
            md_lines.extend(["## Sample Differences for Manual Verification", ""])
            for number, diff in enumerate(result.differences[:MAX_MARKDOWN_SAMPLES], start=1):
                md_lines.extend(
                    [
                        f"### Difference {number}",
                        f"- **Command:** `{diff.command}`",
                        f"- **Type:** {_label(diff.difference_type.value)}",
                        f"- **Severity:** {diff.severity.value.upper()}",
                        f"- **Model Output:** `{_preview(diff.model_output)}`",
                        f"- **Reference Output:** `{_preview(diff.reference_output)}`",
                        "",
                    ]
                )

        if result.recommendations:
            md_lines.extend(["## Recommendations", ""])
            for record in result.recommendations:
                md_lines.append(
                    f"- **[{record.priority.value.upper()}] {record.category}:** {record.action} "
                    f"_({record.reasoning}; effort: {record.estimated_effort})_"
                )
            md_lines.append("")

        if result.warnings:
            md_lines.extend(["## Warnings", ""])
            md_lines.extend(f"- {warning}" for warning in result.warnings)
            md_lines.append("")

        md_lines.extend(["---", f"*Generated {datetime.now().isoformat()}*"])
        return "\n".join(md_lines)

    def generate_json_report(self, result: SpotTestResult) -> str:
        payload = {
            "timestamp": datetime.now().isoformat(),
            "threshold": self.threshold,
            "passed": result.passed(self.threshold),
            "result": result.to_dict(),
        }
        return json.dumps(payload, indent=2, ensure_ascii=False)

    def generate_csv_report(self, result: SpotTestResult) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
        writer.writerow(
            ["Command Index", "Command", "Difference Type", "Severity", "Model Output", "Reference Output"]
        )
        for diff in result.differences:
            writer.writerow(
                [
                    diff.command_index,
                    diff.command,
                    diff.difference_type.value,
                    diff.severity.value,
                    diff.model_output[:PREVIEW_CHARS],
                    diff.reference_output[:PREVIEW_CHARS],
                ]
            )
        return buffer.getvalue()

    @staticmethod
    def group_by_severity(
        differences: List[CommandDifference],
    ) -> Dict[IssueSeverity, List[CommandDifference]]:
        grouped: Dict[IssueSeverity, List[CommandDifference]] = {}
        for diff in differences:
            grouped.setdefault(diff.severity, []).append(diff)
        return grouped

    def write_report(self, result: SpotTestResult, output_dir: Path, output_format: str) -> Path:
        """Write one rendering to ``output_dir``; the file name carries the seed."""
        content = self.render(result, output_format)
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / f"spot-test-{result.seed}.{FILE_EXTENSIONS[output_format]}"
        path.write_text(content, encoding="utf-8")
        logger.info(f"Wrote spot-test {output_format} report: {path}")
        return path
