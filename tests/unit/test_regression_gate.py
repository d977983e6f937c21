"""
Unit tests for baseline persistence and the regression gate (src/regression/)

Tests covering:
- Baseline establishment and schema-validated storage
- Regression detection against known logic differences
- Exit code mapping for CI
- Regression error formatting
"""

import json
import subprocess
from unittest.mock import patch

import pytest

from src.analysis.difference_classifier import ClassifiedDifference, DifferenceClassification
from src.recording.exceptions import (
    ProcessCleanupError,
    ProcessSpawnError,
    RecorderTimeout,
    RecorderUnavailable,
)
from src.regression import (
    BaselineStore,
    BaselineWriteError,
    ExitCode,
    MalformedBaseline,
    NoBaseline,
    RegressionGate,
    exit_code_for,
    format_regression_error,
    get_commit_hash,
    hash_difference,
)
from src.validation.models import ParityRunResult, SeedResult


def make_diff(command, classification=DifferenceClassification.LOGIC_DIFFERENCE, index=1):
    return ClassifiedDifference(
        command_index=index,
        command=command,
        model_output="The mailbox is locked.",
        reference_output="Opening the small mailbox reveals a leaflet.",
        classification=classification,
        reason="Difference cannot be attributed to RNG or state divergence",
        confidence=0.8,
    )


def make_result(differences, seed=12345, commands=10):
    result = ParityRunResult(seeds=[seed], commands_per_seed=commands)
    result.seed_results[seed] = SeedResult(
        seed=seed,
        total_commands=commands,
        matching_responses=commands - len(differences),
        differences=list(differences),
    )
    return result


@pytest.fixture
def gate(tmp_path):
    return RegressionGate(tmp_path / "parity-baseline.json")


class TestHashDifference:
    """Test difference identity hashing."""

    def test_stable_16_hex_chars(self):
        """Test hashes are 16 lowercase hex characters and deterministic."""
        digest = hash_difference("open mailbox", DifferenceClassification.LOGIC_DIFFERENCE)
        assert len(digest) == 16
        assert all(c in "0123456789abcdef" for c in digest)
        assert digest == hash_difference("open mailbox", DifferenceClassification.LOGIC_DIFFERENCE)

    def test_classification_is_part_of_identity(self):
        """Test the same command with another classification hashes differently."""
        assert hash_difference("look", DifferenceClassification.LOGIC_DIFFERENCE) != hash_difference(
            "look", DifferenceClassification.RNG_DIFFERENCE
        )


class TestBaselineStore:
    """Test baseline file handling."""

    def test_establish_then_load(self, gate):
        """Test an established baseline round-trips through the store."""
        result = make_result(
            [make_diff("open mailbox"), make_diff("hello", DifferenceClassification.RNG_DIFFERENCE, 2)]
        )
        baseline = gate.establish_baseline(result, commit_hash="abc123")

        loaded = gate.store.load()
        assert loaded.commit_hash == "abc123"
        assert loaded.total_differences == 2
        assert loaded.logic_differences == 1
        assert loaded.rng_differences == 1
        assert loaded.seeds == [12345]
        assert loaded.commands_per_seed == 10
        assert loaded.overall_parity_percentage == 80.0
        assert loaded.logic_hashes() == baseline.logic_hashes()

    def test_file_matches_schema_layout(self, gate):
        """Test the stored JSON uses the documented field names."""
        gate.establish_baseline(make_result([make_diff("open mailbox")]))
        data = json.loads(gate.baseline_path.read_text(encoding="utf-8"))
        assert data["version"] == "1.0.0"
        assert set(data["summary"]) == {"rngDifferences", "stateDivergences", "logicDifferences"}
        assert data["differences"][0]["classification"] == "LOGIC_DIFFERENCE"
        assert data["commitHash"] is None

    def test_missing_baseline(self, tmp_path):
        """Test loading a missing file raises NoBaseline."""
        with pytest.raises(NoBaseline):
            BaselineStore(tmp_path / "absent.json").load()

    def test_invalid_json(self, tmp_path):
        """Test unparsable JSON raises MalformedBaseline."""
        path = tmp_path / "baseline.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(MalformedBaseline):
            BaselineStore(path).load()

    def test_invalid_utf8(self, tmp_path):
        """Test a baseline that is not UTF-8 raises MalformedBaseline."""
        path = tmp_path / "baseline.json"
        path.write_bytes(b'{"version": "\xff\xfe"}')
        with pytest.raises(MalformedBaseline, match="Cannot read baseline"):
            BaselineStore(path).load()

    def test_unwritable_path(self, tmp_path):
        """Test a baseline path under a regular file raises BaselineWriteError."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("", encoding="utf-8")
        gate = RegressionGate(blocker / "parity-baseline.json")
        with pytest.raises(BaselineWriteError, match="Cannot write baseline"):
            gate.establish_baseline(make_result([]))
        assert exit_code_for(BaselineWriteError("x")) == ExitCode.EXECUTION_ERROR

    def test_schema_violation(self, tmp_path):
        """Test a baseline missing required fields raises MalformedBaseline."""
        path = tmp_path / "baseline.json"
        path.write_text(json.dumps({"version": "1.0.0", "differences": []}), encoding="utf-8")
        with pytest.raises(MalformedBaseline, match="failed validation"):
            BaselineStore(path).load()

    def test_establish_overwrites(self, gate):
        """Test re-establishing replaces the previous baseline."""
        gate.establish_baseline(make_result([make_diff("open mailbox")]))
        gate.establish_baseline(make_result([]))
        assert gate.store.load().total_differences == 0


class TestRegressionGate:
    """Test regression detection."""

    def test_same_run_passes(self, gate):
        """Test a run identical to the baseline passes."""
        result = make_result([make_diff("open mailbox")])
        gate.establish_baseline(result)

        regression = gate.detect_regressions(result)

        assert regression.passed
        assert regression.exit_code == ExitCode.SUCCESS
        assert regression.new_logic_differences == []
        assert regression.error_message is None

    def test_new_logic_difference_fails(self, gate):
        """Test a logic difference absent from the baseline fails the gate."""
        gate.establish_baseline(make_result([make_diff("open mailbox")]))
        current = make_result([make_diff("open mailbox"), make_diff("read leaflet", index=2)])

        regression = gate.detect_regressions(current)

        assert not regression.passed
        assert regression.exit_code == ExitCode.REGRESSION
        assert [d.command for d in regression.new_logic_differences] == ["read leaflet"]
        assert "PARITY REGRESSION DETECTED" in regression.error_message
        assert "Status: FAILED" in regression.summary

    def test_new_rng_difference_passes(self, gate):
        """Test new RNG and state differences never fail the gate."""
        gate.establish_baseline(make_result([]))
        current = make_result(
            [
                make_diff("hello", DifferenceClassification.RNG_DIFFERENCE),
                make_diff("north", DifferenceClassification.STATE_DIVERGENCE, 2),
            ]
        )
        assert gate.detect_regressions(current).passed

    def test_resolved_differences_reported(self, gate):
        """Test baseline logic differences that disappeared are listed as resolved."""
        gate.establish_baseline(make_result([make_diff("open mailbox")]))
        regression = gate.detect_regressions(make_result([]))
        assert regression.passed
        assert [d.command for d in regression.resolved_logic_differences] == ["open mailbox"]
        assert "Resolved logic differences: 1" in regression.summary

    def test_no_baseline(self, gate):
        """Test detection without a baseline raises NoBaseline."""
        with pytest.raises(NoBaseline):
            gate.detect_regressions(make_result([]))
        assert not gate.has_baseline()

    def test_malformed_baseline(self, gate):
        """Test detection with a corrupt baseline raises MalformedBaseline."""
        gate.baseline_path.write_text("[]", encoding="utf-8")
        with pytest.raises(MalformedBaseline):
            gate.detect_regressions(make_result([]))


class TestExitCodes:
    """Test CI exit code mapping."""

    def test_values(self):
        """Test the exit codes CI scripts depend on."""
        assert [int(code) for code in ExitCode] == [0, 1, 2, 3, 4]

    @pytest.mark.parametrize(
        "error,expected",
        [
            (NoBaseline("missing"), ExitCode.NO_BASELINE),
            (RecorderTimeout("slow"), ExitCode.TIMEOUT),
            (MalformedBaseline("corrupt"), ExitCode.EXECUTION_ERROR),
            (RecorderUnavailable("no dfrotz"), ExitCode.EXECUTION_ERROR),
            (ProcessSpawnError("spawn"), ExitCode.EXECUTION_ERROR),
            (ProcessCleanupError("zombie"), ExitCode.EXECUTION_ERROR),
            (RuntimeError("boom"), ExitCode.EXECUTION_ERROR),
        ],
    )
    def test_exit_code_for(self, error, expected):
        """Test each failure maps to its exit code."""
        assert exit_code_for(error) == expected


class TestFormatRegressionError:
    """Test the CI failure message."""

    def test_caps_listed_differences(self):
        """Test at most ten differences are listed in full."""
        differences = [make_diff(f"command {i}", index=i) for i in range(12)]
        message = format_regression_error(differences)
        assert "Found 12 new logic difference(s)" in message
        assert "--- Difference 10 ---" in message
        assert "--- Difference 11 ---" not in message
        assert "... and 2 more" in message

    def test_truncates_long_outputs(self):
        """Test long outputs are previewed."""
        diff = ClassifiedDifference(1, "look", "x" * 500, "y", DifferenceClassification.LOGIC_DIFFERENCE, "r", 0.8)
        message = format_regression_error([diff])
        assert "x" * 200 + "..." in message
        assert "x" * 201 not in message


class TestGetCommitHash:
    """Test commit hash lookup."""

    def test_returns_head(self):
        """Test the git HEAD hash is returned."""
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="abc123\n", stderr="")
        with patch("src.regression.gate.subprocess.run", return_value=completed):
            assert get_commit_hash() == "abc123"

    def test_outside_repository(self):
        """Test git failures yield None."""
        error = subprocess.CalledProcessError(128, ["git"])
        with patch("src.regression.gate.subprocess.run", side_effect=error):
            assert get_commit_hash() is None
