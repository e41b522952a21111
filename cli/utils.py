"""Utility functions for CLI operations."""

import sys

from cli.constants import GREEN, RESET, UPLOAD_READ_SIZE


class ProgressFileWrapper:
    """File-like wrapper that displays upload progress to stdout."""

    def __init__(self, file_path: str, file_size: int, filename: str):
        """
        Initialize the progress file wrapper.

        Args:
            file_path: Path of the file to read
            file_size: Total size of the file in bytes
            filename: Display name for the file
        """
        self.file_path = file_path
        self.file_size = file_size
        self.filename = filename
        self._file = open(file_path, 'rb')
        self._uploaded = 0
        self._finished = False

    def read(self, size: int = -1) -> bytes:
        chunk = self._file.read(size if size > 0 else UPLOAD_READ_SIZE)
        if chunk:
            self._uploaded += len(chunk)
            self._display_progress()
        elif not self._finished:
            self._finish_progress()
        return chunk

    def _display_progress(self) -> None:
        progress = (self._uploaded / self.file_size) * 100 if self.file_size else 100.0
        sys.stdout.write(
            f"\rUploading {self.filename}: {format_file_size(self._uploaded)} / "
            f"{format_file_size(self.file_size)} ({GREEN}{progress:.1f}%{RESET})"
        )
        sys.stdout.flush()

    def _finish_progress(self) -> None:
        self._finished = True
        sys.stdout.write('\n')
        sys.stdout.flush()

    def close(self) -> None:
        """Close the underlying file."""
        if self._file:
            self._file.close()

    def __enter__(self) -> 'ProgressFileWrapper':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def format_file_table(files: list) -> str:
    """Render file metadata dicts returned by GET /files as a table."""
    if not files:
        return "No files."

    header = f"{'ID':>6}  {'Size':>10}  {'Public':<6}  {'Owner':>5}  Name"
    lines = [header, '-' * len(header)]
    for f in files:
        lines.append(
            f"{f['file_id']:>6}  {format_file_size(f['size']):>10}  "
            f"{'yes' if f['is_public'] else 'no':<6}  {f['owner_id']:>5}  {f['filename']}"
        )
    return '\n'.join(lines)
