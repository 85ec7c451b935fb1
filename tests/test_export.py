"""
Tests for artifact naming and the file export sink.
"""

from datetime import datetime

from camwatch.recording.export import (
    Artifact,
    FileExportSink,
    extension_for,
    format_export_stem,
)


class TestNaming:
    def test_stem_format(self):
        assert format_export_stem(datetime(2024, 3, 7, 14, 5, 9)) == "03-07-2024 14-05-09"

    def test_stem_zero_padding(self):
        assert format_export_stem(datetime(2025, 1, 2, 3, 4, 5)) == "01-02-2025 03-04-05"

    def test_extension_for(self):
        assert extension_for("video/webm") == ".webm"
        assert extension_for("video/mp4") == ".mp4"
        assert extension_for("image/png") == ".png"
        assert extension_for("application/octet-stream") == ""

    def test_artifact_filename(self):
        artifact = Artifact(data=b"abc", suggested_filename="01-02-2025 03-04-05", mime_type="video/webm")
        assert artifact.filename == "01-02-2025 03-04-05.webm"
        assert artifact.size == 3


class TestFileExportSink:
    def test_writes_file(self, tmp_path):
        sink = FileExportSink(tmp_path / "exports")
        sink.export(b"data", "03-07-2024 14-05-09", "video/webm")

        path = tmp_path / "exports" / "03-07-2024 14-05-09.webm"
        assert path.read_bytes() == b"data"
        assert sink.get_status()["export_count"] == 1

    def test_name_clash_gets_suffix(self, tmp_path):
        sink = FileExportSink(tmp_path)
        sink.export(b"one", "03-07-2024 14-05-09", "image/png")
        sink.export(b"two", "03-07-2024 14-05-09", "image/png")
        sink.export(b"three", "03-07-2024 14-05-09", "image/png")

        assert (tmp_path / "03-07-2024 14-05-09.png").read_bytes() == b"one"
        assert (tmp_path / "03-07-2024 14-05-09 (1).png").read_bytes() == b"two"
        assert (tmp_path / "03-07-2024 14-05-09 (2).png").read_bytes() == b"three"

    def test_write_error_is_not_raised(self, tmp_path):
        sink = FileExportSink(tmp_path)
        # A directory in the way makes the write fail
        (tmp_path / "blocked.webm").mkdir()
        sink._unique_path = lambda stem, ext: tmp_path / "blocked.webm"

        sink.export(b"data", "blocked", "video/webm")
        assert sink.get_status()["export_count"] == 0
