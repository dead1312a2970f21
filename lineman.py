#!/usr/bin/env python3
"""
lineman

Strip trailing whitespace from text files across a directory tree and
normalize the newlines at the end of each file.
"""

import argparse
import logging
import os
import sys
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, TextIO, Tuple

from tqdm import tqdm

# Define version
__version__ = "0.2.0"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("lineman")

# Characters stripped from the end of every line
HORIZONTAL_WHITESPACE = " \t"


class ErrorKind(Enum):
    """Failure categories reported during a run."""

    INVALID_ROOT_PATH = "invalid root path"
    TRAVERSAL_ERROR = "traversal error"
    FILE_NOT_OPENED = "file not opened"
    FILE_NOT_CLEANED = "file not cleaned"


class FileStatus(Enum):
    CLEANED = "cleaned"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


@dataclass
class CleanResult:
    """Outcome of cleaning a single file."""

    path: str
    status: FileStatus
    error: Optional[ErrorKind] = None
    detail: str = ""

    @property
    def changed(self) -> bool:
        return self.status is FileStatus.CLEANED


@dataclass
class RunResult:
    """Per-file outcomes collected over one run, in the order they happened."""

    cleaned: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    def record(self, outcome: CleanResult) -> None:
        if outcome.status is FileStatus.CLEANED:
            self.cleaned.append(outcome.path)
        elif outcome.status is FileStatus.SKIPPED:
            self.skipped.append(outcome.path)
        else:
            self.unchanged.append(outcome.path)

    @property
    def processed_count(self) -> int:
        return len(self.cleaned) + len(self.skipped) + len(self.unchanged)


def clean_line(line: str, normalize_eof: bool) -> Tuple[str, bool]:
    """
    Remove trailing spaces and tabs from one line segment.

    The newline is kept when the segment had one. An unterminated segment
    gains a newline only if ``normalize_eof`` is set. Returns the cleaned
    segment and whether it differs from the input.
    """
    if not line:
        return line, False

    has_newline: bool = line.endswith("\n")
    content: str = line[:-1] if has_newline else line
    cleaned: str = content.rstrip(HORIZONTAL_WHITESPACE)

    if has_newline or normalize_eof:
        cleaned += "\n"

    return cleaned, cleaned != line


def split_lines(content: str) -> List[str]:
    """Split on LF only, keeping each terminator with its line."""
    pieces: List[str] = content.split("\n")
    lines: List[str] = [piece + "\n" for piece in pieces[:-1]]
    # Unterminated remainder
    if pieces[-1]:
        lines.append(pieces[-1])
    return lines


def clean_lines(lines: Sequence[str], normalize_eof: bool) -> Tuple[List[str], bool]:
    """Clean every line and apply the end-of-file blank line policy."""
    cleaned_lines: List[str] = []
    changed: bool = False

    for line in lines:
        cleaned, line_changed = clean_line(line, normalize_eof)
        cleaned_lines.append(cleaned)
        changed = changed or line_changed

    if normalize_eof:
        while cleaned_lines and cleaned_lines[-1] in ("", "\n"):
            cleaned_lines.pop()
        changed = changed or len(cleaned_lines) != len(lines)

    return cleaned_lines, changed


def clean_content(content: str, normalize_eof: bool = True) -> Tuple[str, bool]:
    """Clean a whole file's text. Returns the new text and whether it changed."""
    cleaned_lines, changed = clean_lines(split_lines(content), normalize_eof)
    return "".join(cleaned_lines), changed


def clean_file(path: str, normalize_eof: bool = True) -> CleanResult:
    """
    Clean a file in place.

    The file is only written when its cleaned content differs from what was
    read. A write that fails halfway leaves the file partially written; no
    backup is kept, so such a file has to be recovered from elsewhere (e.g.
    version control).
    """
    try:
        with open(path, "r", newline="", encoding="utf-8") as f:
            content: str = f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Cannot open file %s: %s", path, str(e))
        return CleanResult(path, FileStatus.SKIPPED, ErrorKind.FILE_NOT_OPENED, str(e))

    cleaned_content, changed = clean_content(content, normalize_eof)

    if not changed:
        logger.debug("No changes needed for file: %s", path)
        return CleanResult(path, FileStatus.UNCHANGED)

    try:
        with open(path, "w", newline="", encoding="utf-8") as f:
            f.write(cleaned_content)
    except OSError as e:
        logger.error(
            "Cannot write file %s, contents may be incomplete: %s", path, str(e)
        )
        return CleanResult(path, FileStatus.SKIPPED, ErrorKind.FILE_NOT_CLEANED, str(e))

    logger.debug("Cleaned file: %s", path)
    return CleanResult(path, FileStatus.CLEANED)


def file_extension(filename: str) -> Optional[str]:
    """
    Return the text after the final dot of a file name, without the dot.

    Names without a dot, and dotfiles like ``.bashrc``, have no extension.
    """
    ext: str = os.path.splitext(filename)[1]
    if not ext:
        return None
    return ext[1:]


def find_files(
    root_dir: str,
    extensions: Iterable[str],
    result: RunResult,
    ignore_dirs: Optional[Iterable[str]] = None,
) -> List[str]:
    """
    Find all regular files under root_dir whose extension is in extensions.

    Extensions are compared verbatim and case-sensitively. Directories that
    cannot be listed are recorded in ``result.errors`` and skipped.
    """
    wanted = set(extensions)
    ignore_dirs_set = set(ignore_dirs or ())
    all_files: List[str] = []

    def on_error(error: OSError) -> None:
        failed_path: str = error.filename if error.filename else root_dir
        logger.error(
            "%s at %s: %s", ErrorKind.TRAVERSAL_ERROR.value, failed_path, str(error)
        )
        result.errors.append(failed_path)

    for root, dirs, files in os.walk(root_dir, onerror=on_error):
        # Skip ignored directories
        dirs[:] = [d for d in dirs if d not in ignore_dirs_set]

        for filename in files:
            if file_extension(filename) not in wanted:
                continue
            file_path: str = os.path.join(root, filename)
            if os.path.isfile(file_path):
                all_files.append(file_path)

    return all_files


def process_files(
    files: Sequence[str],
    normalize_eof: bool,
    result: RunResult,
    show_progress: bool = True,
) -> RunResult:
    """Clean each file in turn, sorting the outcomes into result."""
    with tqdm(
        total=len(files),
        desc="Cleaning files",
        unit="file",
        disable=not show_progress,
    ) as pbar:
        for file_path in files:
            result.record(clean_file(file_path, normalize_eof))
            pbar.update(1)

    return result


def run(
    root_dir: str,
    extensions: Iterable[str],
    normalize_eof: bool = True,
    ignore_dirs: Optional[Iterable[str]] = None,
    show_progress: bool = True,
) -> RunResult:
    """Walk root_dir and clean every matching file."""
    result = RunResult()
    files: List[str] = find_files(root_dir, extensions, result, ignore_dirs)
    logger.info("Found %d files to process.", len(files))
    return process_files(files, normalize_eof, result, show_progress)


def print_report(result: RunResult, stream: Optional[TextIO] = None) -> None:
    """Print the cleaned, skipped and traversal error lists."""
    out: TextIO = stream if stream is not None else sys.stdout
    sections = (
        ("Cleaned files", result.cleaned),
        ("Skipped files", result.skipped),
        ("Traversal errors", result.errors),
    )
    for title, paths in sections:
        print(f"{title} ({len(paths)}):", file=out)
        if not paths:
            print("  (none)", file=out)
        for path in paths:
            print(f"  {path}", file=out)


def format_duration(seconds: float) -> str:
    """Format an elapsed time in seconds, minutes or hours."""
    if seconds < 60:
        return f"{seconds:.2f} seconds"
    if seconds < 3600:
        minutes = int(seconds // 60)
        return (
            f"{minutes} minute{'s' if minutes != 1 else ''} {seconds % 60:.2f} seconds"
        )
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    return (
        f"{hours} hour{'s' if hours != 1 else ''} "
        f"{minutes} minute{'s' if minutes != 1 else ''} "
        f"{seconds % 60:.2f} seconds"
    )


def configure_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Log to the console, and to log_file as well when one is given."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a"))
    logging.basicConfig(
        level=logging.INFO, format=LOG_FORMAT, handlers=handlers, force=True
    )
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lineman",
        description="Strip trailing whitespace and normalize end-of-file newlines",
    )
    parser.add_argument(
        "-p",
        "--path",
        required=True,
        help="The root path from which to begin processing",
    )
    parser.add_argument(
        "-e",
        "--extensions",
        nargs="*",
        action="extend",
        default=None,
        help="File extensions to process, without the leading dot (e.g. 'txt py')",
    )
    parser.add_argument(
        "--disable-eof-newline-normalization",
        action="store_true",
        help="Keep trailing blank lines and the final line's missing newline",
    )
    parser.add_argument(
        "--ignore-dirs",
        nargs="+",
        default=[],
        help="Directory names to skip during traversal (default: none)",
    )
    parser.add_argument(
        "--no-progress", action="store_true", help="Do not show a progress bar"
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Enable verbose logging"
    )
    parser.add_argument(
        "--log-file", default=None, help="Also write log output to this file"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"lineman v{__version__}",
        help="Show program version and exit",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        configure_logging(args.verbose, args.log_file)
    except OSError as e:
        configure_logging(args.verbose)
        logger.error("Cannot open log file %s: %s", args.log_file, str(e))
        return 1

    try:
        root_dir: str = args.path
        if not os.path.isdir(root_dir):
            logger.error(
                "%s: '%s' is not a valid directory.",
                ErrorKind.INVALID_ROOT_PATH.value.capitalize(),
                root_dir,
            )
            return 1

        extensions: List[str] = args.extensions or []
        normalize_eof: bool = not args.disable_eof_newline_normalization

        logger.info(
            "Searching for files in %s with extensions: %s",
            root_dir,
            " ".join(extensions) if extensions else "(none)",
        )
        if args.ignore_dirs:
            logger.info("Ignoring directories: %s", ", ".join(args.ignore_dirs))
        logger.info("EOF newline normalization: %s", "Yes" if normalize_eof else "No")

        start_time: float = time.time()
        result: RunResult = run(
            root_dir,
            extensions,
            normalize_eof=normalize_eof,
            ignore_dirs=args.ignore_dirs,
            show_progress=not args.no_progress,
        )
        execution_time: float = time.time() - start_time

        print_report(result)

        if result.skipped or result.errors:
            logger.warning(
                "Encountered %d skipped files and %d traversal errors",
                len(result.skipped),
                len(result.errors),
            )
        logger.info(
            "Done! Cleaned %d of %d files in %s.",
            len(result.cleaned),
            result.processed_count,
            format_duration(execution_time),
        )
        return 0
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user.")
        return 130
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("An unexpected error occurred: %s", str(e))
        logger.debug("Traceback:", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
