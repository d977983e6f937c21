#!/usr/bin/env python3
"""
Compare two recorded transcripts and write JSON + Markdown reports.

Exits 1 when any major or critical difference remains.

Usage:
    python scripts/compare_transcripts.py reference.json model.json [--output-dir parity-results]
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from src.comparison.comparator import TranscriptComparator
from src.comparison.diff_reporter import DiffReporter, count_blocking_differences
from src.comparison.models import ComparisonOptions
from src.recording.models import TranscriptSource
from src.recording.persistence import load_transcript

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Compare two transcript records")
    parser.add_argument("reference", type=Path, help="Reference interpreter transcript")
    parser.add_argument("model", type=Path, help="Model engine transcript")
    parser.add_argument("--output-dir", type=Path, help="Report directory")
    parser.add_argument("--tolerance", type=float, default=0.95, help="Close-match threshold")
    parser.add_argument("--ignore-case", action="store_true")
    args = parser.parse_args()

    try:
        reference = load_transcript(args.reference, TranscriptSource.REFERENCE)
        model = load_transcript(args.model, TranscriptSource.MODEL)
    except (OSError, ValueError) as e:
        logger.error(f"Could not load transcripts: {e}")
        return 2

    options = ComparisonOptions(
        tolerance_threshold=args.tolerance, ignore_case_in_messages=args.ignore_case
    )
    report = TranscriptComparator(options).compare(reference, model)

    label = f"{reference.id}-vs-{model.id}"
    DiffReporter(output_dir=args.output_dir).write_reports(
        label, f"{args.reference.name} vs {args.model.name}", report
    )

    blocking = count_blocking_differences(report)
    logger.info(
        f"Parity {report.parity_score:.2f}%: {len(report.differences)} difference(s), "
        f"{blocking} blocking"
    )
    return 1 if blocking else 0


if __name__ == "__main__":
    sys.exit(main())
