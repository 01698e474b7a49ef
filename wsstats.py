#!/usr/bin/env python3
"""
WhitespaceStats

Print line-ending and whitespace statistics for the files in a directory.
"""

import argparse
import concurrent.futures
import csv
import logging
import os
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TextIO, Tuple

from tqdm import tqdm

from textstats import FileCharacteristics, TextStatistics, analyze_file

# Define version
__version__ = "1.0.0"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("WhitespaceStats")
# Add a thread lock for logging
log_lock = threading.Lock()

DEFAULT_DELIMITER = ";"
BATCH_SIZE = 1000
MAX_WORKERS = 32


@dataclass(frozen=True)
class FileResult:
    """Outcome of analysing one path."""

    path: str
    characteristics: Optional[FileCharacteristics] = None
    error: Optional[str] = None


def configure_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Send log records to stderr (and optionally a file), never to the report."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a"))

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False


def _matches(filename: str, glob_patterns: Sequence[str]) -> bool:
    if not glob_patterns:
        return True
    return any(Path(filename).match(pattern) for pattern in glob_patterns)


def _to_glob(pattern: str) -> str:
    # A bare extension like ".py" means "*.py"
    if pattern.startswith(".") and "/" not in pattern and "\\" not in pattern:
        return f"*{pattern}"
    return pattern


def find_files(
    root_dir: str,
    file_patterns: Optional[List[str]] = None,
    ignore_dirs: Optional[List[str]] = None,
) -> List[str]:
    """
    Find files under root_dir recursively.

    Files of a directory come first, sorted by name, then the contents of
    each subdirectory, also sorted by name. Hidden directories (leading
    dot) are never entered.
    """
    ignore_dirs_set = set(ignore_dirs or [])
    glob_patterns: List[str] = [
        _to_glob(p.strip()) for p in (file_patterns or []) if p.strip()
    ]

    try:
        with os.scandir(root_dir) as it:
            # Case-insensitive, ties broken by the exact name
            entries = sorted(it, key=lambda e: (e.name.casefold(), e.name))
    except OSError as e:
        with log_lock:
            logger.error("Could not list directory %s: %s", root_dir, str(e))
        return []

    all_files: List[str] = [
        entry.path
        for entry in entries
        if entry.is_file() and _matches(entry.name, glob_patterns)
    ]

    for entry in entries:
        if not entry.is_dir(follow_symlinks=False):
            continue
        if entry.name.startswith(".") or entry.name in ignore_dirs_set:
            continue
        all_files.extend(find_files(entry.path, glob_patterns, ignore_dirs))

    return all_files


def analyze_file_safely(file_path: str) -> FileResult:
    """Analyse one file, turning I/O failures into a FileResult with an error."""
    try:
        characteristics: FileCharacteristics = analyze_file(file_path)
    except OSError as e:
        with log_lock:
            logger.error("Could not access file: %s (%s)", file_path, str(e))
        return FileResult(file_path, error=str(e))

    with log_lock:
        logger.debug("Analyzed %s: %s", file_path, characteristics.type_name)
    return FileResult(file_path, characteristics=characteristics)


def analyze_files_parallel(  # pylint: disable=too-many-locals
    files: List[str],
    max_workers: Optional[int] = None,
    show_progress: bool = True,
) -> List[FileResult]:
    """Analyse files on a thread pool; results keep the order of files."""
    if not files:
        return []

    # Calculate optimal number of workers if not specified
    if max_workers is None:
        cpu_count: Optional[int] = os.cpu_count()
        max_workers = min((cpu_count or 2) * 2, MAX_WORKERS, len(files))
    else:
        max_workers = min(max_workers, MAX_WORKERS, len(files))

    with log_lock:
        logger.debug(
            "Using %d worker threads for analysing %d files", max_workers, len(files)
        )

    results: List[Optional[FileResult]] = [None] * len(files)

    # Process files in batches to avoid excessive memory usage for large file lists
    for i in range(0, len(files), BATCH_SIZE):
        batch_files = files[i : i + BATCH_SIZE]

        with tqdm(
            total=len(batch_files),
            desc=f"Analysing files (batch {i // BATCH_SIZE + 1})",
            unit="file",
            disable=not show_progress,
        ) as pbar:
            with concurrent.futures.ThreadPoolExecutor(
                max_workers=max_workers
            ) as executor:
                future_to_index = {
                    executor.submit(analyze_file_safely, file_path): i + offset
                    for offset, file_path in enumerate(batch_files)
                }

                for future in concurrent.futures.as_completed(future_to_index):
                    index = future_to_index[future]
                    try:
                        results[index] = future.result()
                    except Exception as e:  # pylint: disable=broad-exception-caught
                        with log_lock:
                            logger.error(
                                "Unhandled error analysing %s: %s", files[index], str(e)
                            )
                        results[index] = FileResult(files[index], error=str(e))
                    finally:
                        pbar.update(1)

    finished: List[FileResult] = [r for r in results if r is not None]
    text_count = sum(
        1 for r in finished if r.characteristics and r.characteristics.is_text
    )
    error_count = sum(1 for r in finished if r.error is not None)

    with log_lock:
        if error_count > 0:
            logger.warning("Could not access %d files", error_count)
        logger.info(
            "Text: %d, Binary: %d, Errors: %d",
            text_count,
            len(finished) - text_count - error_count,
            error_count,
        )

    return finished


def _statistic(attribute: str) -> Callable[[str, FileCharacteristics], str]:
    def extract(_path: str, characteristics: FileCharacteristics) -> str:
        statistics: Optional[TextStatistics] = characteristics.statistics
        if statistics is None:
            return ""
        return str(getattr(statistics, attribute))

    return extract


COLUMNS: Tuple[Tuple[str, Callable[[str, FileCharacteristics], str]], ...] = (
    ("Directory", lambda path, _c: os.path.dirname(path)),
    ("File", lambda path, _c: os.path.basename(path)),
    ("Type", lambda _path, c: c.type_name),
    ("All lines", _statistic("all_lines")),
    ("LF ending lines", _statistic("lf_lines")),
    ("CR+LF ending lines", _statistic("crlf_lines")),
    ("Leading spaces lines", _statistic("leading_spaces_lines")),
    ("Leading tabs lines", _statistic("leading_tabs_lines")),
    ("Leading mixed lines", _statistic("leading_mixed_lines")),
    ("Non-leading tabs lines", _statistic("non_leading_tabs_lines")),
    ("Trailing whitespace lines", _statistic("trailing_whitespace_lines")),
    ("Any sole CR lines", _statistic("sole_cr_lines")),
)


def format_row(path: str, characteristics: FileCharacteristics) -> List[str]:
    return [value(path, characteristics) for _, value in COLUMNS]


def write_report(
    results: Sequence[FileResult], out: TextIO, delimiter: str = DEFAULT_DELIMITER
) -> int:
    """Write the header and one row per readable file. Returns the row count."""
    writer = csv.writer(out, delimiter=delimiter, lineterminator="\n")
    writer.writerow([name for name, _ in COLUMNS])

    rows = 0
    for result in results:
        if result.characteristics is None:
            continue
        writer.writerow(format_row(result.path, result.characteristics))
        rows += 1
    return rows


def _single_character(value: str) -> str:
    if len(value) != 1:
        raise argparse.ArgumentTypeError("delimiter must be a single character")
    return value


def build_parser(version: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print whitespace statistics for the files in the given directory"
    )
    parser.add_argument(
        "root_dir",
        nargs="?",
        default=None,
        help="Root directory to scan (default: current directory)",
    )
    parser.add_argument(
        "--patterns",
        nargs="+",
        default=[],
        help="File patterns to include (e.g., '.py *.md'; default: all files)",
    )
    parser.add_argument(
        "--ignore-dirs",
        nargs="+",
        default=[],
        help="Additional directory names to skip (hidden directories are always skipped)",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Write the report to this file instead of standard output",
    )
    parser.add_argument(
        "--delimiter",
        type=_single_character,
        default=DEFAULT_DELIMITER,
        help=f"Column delimiter of the report (default: '{DEFAULT_DELIMITER}')",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of worker threads for parallel analysis "
        "(default: auto-detect based on CPU count)",
    )
    parser.add_argument(
        "--no-progress", action="store_true", help="Do not show a progress bar"
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Enable verbose logging"
    )
    parser.add_argument(
        "--log-file", default=None, help="Also append log messages to this file"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"WhitespaceStats v{version}",
        help="Show program version and exit",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point. Returns the process exit code."""
    version: str = getattr(sys.modules[__name__], "__version__", "1.0.0")
    args = build_parser(version).parse_args(argv)

    try:
        configure_logging(args.verbose, args.log_file)
        logger.debug("WhitespaceStats v%s", version)

        root_dir: str = args.root_dir if args.root_dir else os.getcwd()
        if not os.path.isdir(root_dir):
            logger.error("Error: '%s' is not a valid directory.", root_dir)
            return 1
        root_dir = os.path.abspath(root_dir)

        if args.workers is not None and args.workers <= 0:
            logger.warning(
                "Invalid worker count (%d), using auto-detection instead", args.workers
            )
            args.workers = None

        logger.info("Scanning files in %s", root_dir)
        if args.patterns:
            logger.info("Matching patterns: %s", " ".join(args.patterns))
        if args.ignore_dirs:
            logger.info("Ignoring directories: %s", ", ".join(args.ignore_dirs))

        start_time: float = time.time()

        files: List[str] = find_files(root_dir, args.patterns, args.ignore_dirs)
        if not files:
            logger.warning("No matching files found.")

        results = analyze_files_parallel(
            files, max_workers=args.workers, show_progress=not args.no_progress
        )

        if args.output:
            with open(args.output, "w", newline="", encoding="utf-8") as out:
                rows = write_report(results, out, args.delimiter)
        else:
            rows = write_report(results, sys.stdout, args.delimiter)

        logger.info(
            "Done! Reported %d of %d files in %.2f seconds.",
            rows,
            len(files),
            time.time() - start_time,
        )
        return 0
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user.")
        return 130
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("An unexpected error occurred: %s", str(e))
        if logger.level <= logging.DEBUG:
            import traceback  # pylint: disable=import-outside-toplevel

            logger.debug("Traceback: %s", traceback.format_exc())
        return 1


if __name__ == "__main__":
    sys.exit(main())
