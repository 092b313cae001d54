"""Tests for exit_codes module."""

from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from sequintools.cli.exit_codes import (
    EXIT_ERROR,
    EXIT_SIGINT,
    EXIT_SIGTERM,
    EXIT_SUCCESS,
    EXIT_USAGE,
    exit_code_for,
)
from sequintools.exceptions import CalibrationError, ConfigurationError, RegionError


class TestExitCodes:
    """Test exit code constants."""

    def test_shell_conventions(self):
        assert EXIT_SUCCESS == 0
        assert EXIT_ERROR == 1
        assert EXIT_USAGE == 2
        assert EXIT_SIGINT == 128 + 2
        assert EXIT_SIGTERM == 128 + 15


class TestExitCodeFor:
    """Test the exception to exit code mapping."""

    def test_runtime_errors(self):
        assert exit_code_for(CalibrationError("x")) == EXIT_ERROR
        assert exit_code_for(RegionError("x")) == EXIT_ERROR
        assert exit_code_for(FileNotFoundError("x")) == EXIT_ERROR

    def test_configuration_error_is_usage(self):
        assert exit_code_for(ConfigurationError("x")) == EXIT_USAGE

    def test_interrupt(self):
        assert exit_code_for(KeyboardInterrupt()) == EXIT_SIGINT
