#!/usr/bin/env python3
"""
Test error handling scenarios for wsstats.py.
"""

import io
import logging
import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path to import wsstats module
sys.path.insert(0, str(Path(__file__).parent.parent))
import wsstats  # pylint: disable=wrong-import-position

# Disable logging for tests
wsstats.logger.setLevel(logging.CRITICAL)


class TestErrorHandling(unittest.TestCase):
    def setUp(self) -> None:
        # Create a temporary directory
        self.test_dir = tempfile.mkdtemp()

        # Create test files
        self.test_file = os.path.join(self.test_dir, "test.txt")
        with open(self.test_file, "wb") as f:
            f.write(b"Test content\n")

    def tearDown(self) -> None:
        # Clean up the temporary directory
        shutil.rmtree(self.test_dir)

    def test_analyze_nonexistent_file(self) -> None:
        """A missing file becomes an error result instead of raising."""
        result = wsstats.analyze_file_safely("/nonexistent/file.txt")
        self.assertIsNone(result.characteristics)
        self.assertIsNotNone(result.error)

    def test_analyze_permission_error(self) -> None:
        with patch("wsstats.analyze_file", side_effect=PermissionError("denied")):
            result = wsstats.analyze_file_safely(self.test_file)
        self.assertIsNone(result.characteristics)
        self.assertEqual(result.error, "denied")

    def test_access_error_is_logged(self) -> None:
        with patch("wsstats.analyze_file", side_effect=OSError("disk gone")):
            with patch.object(wsstats.logger, "error") as log_error:
                wsstats.analyze_file_safely(self.test_file)
        log_error.assert_called_once()
        self.assertIn("Could not access file", log_error.call_args[0][0])

    def test_other_errors_propagate_from_analysis(self) -> None:
        """Only I/O errors are turned into results."""
        with patch("wsstats.analyze_file", side_effect=ValueError("bug")):
            with self.assertRaises(ValueError):
                wsstats.analyze_file_safely(self.test_file)

    def test_unhandled_worker_error(self) -> None:
        """A worker failure is recorded and the batch continues."""
        other_file = os.path.join(self.test_dir, "other.txt")
        with open(other_file, "wb") as f:
            f.write(b"fine\n")

        real_analyze = wsstats.analyze_file_safely

        def flaky(path: str) -> wsstats.FileResult:
            if path == self.test_file:
                raise RuntimeError("worker crashed")
            return real_analyze(path)

        with patch("wsstats.analyze_file_safely", side_effect=flaky):
            results = wsstats.analyze_files_parallel(
                [self.test_file, other_file], max_workers=2, show_progress=False
            )

        self.assertEqual(len(results), 2)
        self.assertEqual(results[0].error, "worker crashed")
        self.assertIsNotNone(results[1].characteristics)

    def test_unreadable_files_are_left_out_of_report(self) -> None:
        results = [
            wsstats.FileResult("/missing/a.txt", error="gone"),
            wsstats.analyze_file_safely(self.test_file),
        ]
        out = io.StringIO()
        rows = wsstats.write_report(results, out)
        self.assertEqual(rows, 1)
        self.assertNotIn("a.txt", out.getvalue())
        self.assertIn("test.txt", out.getvalue())

    def test_find_files_missing_directory(self) -> None:
        self.assertEqual(wsstats.find_files("/nonexistent/directory"), [])

    def test_find_files_unlistable_subdirectory(self) -> None:
        """A directory that cannot be listed is skipped, the rest is kept."""
        sub = os.path.join(self.test_dir, "sub")
        os.makedirs(sub)
        with open(os.path.join(sub, "inner.txt"), "wb") as f:
            f.write(b"x\n")

        real_scandir = os.scandir

        def failing_scandir(path):  # type: ignore[no-untyped-def]
            if os.path.basename(path) == "sub":
                raise PermissionError("no access")
            return real_scandir(path)

        with patch("wsstats.os.scandir", side_effect=failing_scandir):
            files = wsstats.find_files(self.test_dir)

        self.assertEqual(files, [self.test_file])

    def test_main_output_file_not_writable(self) -> None:
        """Failing to open the report file is an unexpected error."""
        output = os.path.join(self.test_dir, "no_such_dir", "report.csv")
        # Keep the logger as configured for these tests
        with patch("wsstats.configure_logging"):
            result = wsstats.main([self.test_dir, "--output", output, "--no-progress"])
        self.assertEqual(result, 1)
        self.assertEqual(wsstats.logger.level, logging.CRITICAL)


if __name__ == "__main__":
    unittest.main()
