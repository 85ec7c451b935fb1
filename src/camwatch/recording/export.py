"""
Artifact export.

Finalized recordings and stills leave the core through an `ExportSink`.
`FileExportSink` writes them into a local directory, the way a browser
download would.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

EXPORT_TIMESTAMP_FORMAT = "%m-%d-%Y %H-%M-%S"

MIME_EXTENSIONS = {
    "video/webm": ".webm",
    "video/mp4": ".mp4",
    "image/png": ".png",
    "image/jpeg": ".jpg",
}


def format_export_stem(timestamp: datetime) -> str:
    """Filename stem for an artifact, e.g. '03-07-2024 14-05-09'."""
    return timestamp.strftime(EXPORT_TIMESTAMP_FORMAT)


def extension_for(mime_type: str) -> str:
    """File extension for a MIME type ('' if unknown)."""
    return MIME_EXTENSIONS.get(mime_type, "")


@dataclass(frozen=True)
class Artifact:
    """A finalized exportable payload."""

    data: bytes
    suggested_filename: str
    mime_type: str

    @property
    def filename(self) -> str:
        return self.suggested_filename + extension_for(self.mime_type)

    @property
    def size(self) -> int:
        return len(self.data)


class ExportSink(Protocol):
    """Receives finalized artifacts."""

    def export(self, data: bytes, suggested_filename: str, mime_hint: str) -> None: ...


class FileExportSink:
    """
    Writes artifacts into a directory.

    Name clashes get a ' (n)' suffix instead of overwriting. Write errors
    are logged here and never reach the caller.
    """

    def __init__(self, export_dir: str | Path):
        self.export_dir = Path(export_dir)
        self.export_dir.mkdir(parents=True, exist_ok=True)
        self._export_count = 0
        self._last_export: Path | None = None
        logger.info(f"FileExportSink writing to {self.export_dir}")

    def _unique_path(self, stem: str, extension: str) -> Path:
        path = self.export_dir / f"{stem}{extension}"
        n = 1
        while path.exists():
            path = self.export_dir / f"{stem} ({n}){extension}"
            n += 1
        return path

    def export(self, data: bytes, suggested_filename: str, mime_hint: str) -> None:
        """Write the payload as '<suggested_filename><ext>'."""
        path = self._unique_path(suggested_filename, extension_for(mime_hint))
        try:
            path.write_bytes(data)
        except OSError as e:
            logger.error(f"Failed to export {path}: {e}")
            return

        self._export_count += 1
        self._last_export = path
        size_kb = len(data) / 1024
        logger.info(f"Exported {path.name} ({size_kb:.1f}KB, {mime_hint})")

    def get_status(self) -> dict:
        return {
            "export_dir": str(self.export_dir),
            "export_count": self._export_count,
            "last_export": str(self._last_export) if self._last_export else None,
        }
