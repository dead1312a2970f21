#!/usr/bin/env python3
"""
Test error handling scenarios for lineman.py.
"""

import builtins
import logging
import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path to import lineman module
sys.path.insert(0, str(Path(__file__).parent.parent))
import lineman  # pylint: disable=wrong-import-position

# Disable logging for tests
lineman.logger.setLevel(logging.CRITICAL)

real_open = builtins.open


def fail_on_write(error: OSError):
    """Build an open() replacement that reads normally but cannot write."""

    def fake_open(file, mode="r", *args, **kwargs):
        if "w" in mode:
            raise error
        return real_open(file, mode, *args, **kwargs)

    return fake_open


class HalfWrittenFile:
    """Writes the first half of the text to the real file, then fails."""

    def __init__(self, handle) -> None:
        self.handle = handle

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> bool:
        self.handle.close()
        return False

    def write(self, text: str) -> int:
        self.handle.write(text[: len(text) // 2])
        self.handle.flush()
        raise OSError(28, "No space left on device")


def fail_mid_write(file, mode="r", *args, **kwargs):
    handle = real_open(file, mode, *args, **kwargs)
    if "w" in mode:
        return HalfWrittenFile(handle)
    return handle


class TestErrorHandling(unittest.TestCase):
    def setUp(self) -> None:
        # Create a temporary directory
        self.test_dir = tempfile.mkdtemp()

        # Create test files
        self.test_file = os.path.join(self.test_dir, "test.txt")
        with open(self.test_file, "w", encoding="utf-8") as f:
            f.write("Test content   \n")

    def tearDown(self) -> None:
        # Clean up the temporary directory
        shutil.rmtree(self.test_dir)

    def test_clean_file_nonexistent_file(self) -> None:
        """Test cleaning a file that doesn't exist."""
        result = lineman.clean_file(os.path.join(self.test_dir, "missing.txt"))
        self.assertEqual(result.status, lineman.FileStatus.SKIPPED)
        self.assertEqual(result.error, lineman.ErrorKind.FILE_NOT_OPENED)
        self.assertTrue(result.detail)

    def test_clean_file_read_permission_error(self) -> None:
        with patch("builtins.open", side_effect=PermissionError("Permission denied")):
            result = lineman.clean_file(self.test_file)
        self.assertEqual(result.status, lineman.FileStatus.SKIPPED)
        self.assertEqual(result.error, lineman.ErrorKind.FILE_NOT_OPENED)
        self.assertIn("Permission denied", result.detail)

    def test_clean_file_directory(self) -> None:
        result = lineman.clean_file(self.test_dir)
        self.assertEqual(result.error, lineman.ErrorKind.FILE_NOT_OPENED)

    def test_clean_file_write_error(self) -> None:
        """Test cleaning a file where writing fails."""
        with patch("builtins.open", side_effect=fail_on_write(OSError("Write error"))):
            result = lineman.clean_file(self.test_file)

        self.assertEqual(result.status, lineman.FileStatus.SKIPPED)
        self.assertEqual(result.error, lineman.ErrorKind.FILE_NOT_CLEANED)
        self.assertIn("Write error", result.detail)
        # Opening for write failed, so the original is untouched
        with open(self.test_file, encoding="utf-8") as f:
            self.assertEqual(f.read(), "Test content   \n")

    def test_clean_file_partial_write(self) -> None:
        """A write failing after truncation leaves a partially written file."""
        with patch("builtins.open", side_effect=fail_mid_write):
            result = lineman.clean_file(self.test_file)

        self.assertEqual(result.status, lineman.FileStatus.SKIPPED)
        self.assertEqual(result.error, lineman.ErrorKind.FILE_NOT_CLEANED)
        self.assertIn("No space left on device", result.detail)
        # Neither the original nor the cleaned text: the file is indeterminate
        with open(self.test_file, encoding="utf-8") as f:
            content = f.read()
        self.assertEqual(content, "Test c")
        self.assertNotEqual(content, "Test content   \n")
        self.assertNotEqual(content, "Test content\n")

    def test_unchanged_file_never_opened_for_write(self) -> None:
        with open(self.test_file, "w", encoding="utf-8") as f:
            f.write("Test content\n")

        with patch("builtins.open", side_effect=fail_on_write(OSError("Write error"))):
            result = lineman.clean_file(self.test_file)

        self.assertEqual(result.status, lineman.FileStatus.UNCHANGED)

    def test_write_error_routed_to_skipped(self) -> None:
        with patch("builtins.open", side_effect=fail_on_write(OSError("Disk full"))):
            result = lineman.run(self.test_dir, ["txt"], show_progress=False)

        self.assertEqual(result.skipped, [self.test_file])
        self.assertEqual(result.cleaned, [])

    def test_failures_are_logged(self) -> None:
        original_level = lineman.logger.level
        lineman.logger.setLevel(logging.ERROR)
        try:
            with self.assertLogs(lineman.logger, level="ERROR") as logs:
                lineman.clean_file(os.path.join(self.test_dir, "missing.txt"))
        finally:
            lineman.logger.setLevel(original_level)
        self.assertIn("Cannot open file", logs.output[0])

    def test_error_kind_values(self) -> None:
        self.assertEqual(
            {kind.name for kind in lineman.ErrorKind},
            {"INVALID_ROOT_PATH", "TRAVERSAL_ERROR", "FILE_NOT_OPENED", "FILE_NOT_CLEANED"},
        )


if __name__ == "__main__":
    unittest.main()
