import io
import json
import zipfile
from datetime import datetime

import pytest

from conftest import ANALYSIS, image_url, make_frame
from frameperfect.exceptions import NoKeepersError
from frameperfect.schemas.frame import Analysis
from frameperfect.services.exporter import (
    MANIFEST_NAME,
    LibraryView,
    archive_filename,
    export_library,
    filter_library,
)


@pytest.fixture
def frames():
    analysis = Analysis.model_validate(ANALYSIS)
    return [
        make_frame(timestamp=1.5, is_keeper=True, analysis=analysis),
        make_frame(timestamp=3.0, is_keeper=False, analysis=analysis),
        make_frame(
            timestamp=12.25,
            is_keeper=True,
            is_enhanced=True,
            enhanced_image=image_url("enhanced"),
        ),
    ]


class TestExportLibrary:
    def test_requires_keepers(self):
        with pytest.raises(NoKeepersError):
            export_library("Holiday", [make_frame()])

    def test_archive_contents(self, frames):
        archive = zipfile.ZipFile(io.BytesIO(export_library("Holiday", frames)))

        assert sorted(archive.namelist()) == sorted(
            ["frame_1_1.50s.jpg", "frame_2_12.25s.jpg", MANIFEST_NAME]
        )
        assert archive.read("frame_1_1.50s.jpg") == b"frame@1.50"
        # enhanced image wins over the original
        assert archive.read("frame_2_12.25s.jpg") == b"enhanced"

    def test_manifest_lists_analyzed_keepers_only(self, frames):
        archive = zipfile.ZipFile(io.BytesIO(export_library("Holiday", frames)))
        manifest = json.loads(archive.read(MANIFEST_NAME))

        assert manifest["project_name"] == "Holiday"
        assert datetime.fromisoformat(manifest["export_date"]).tzinfo is not None
        assert len(manifest["frames"]) == 1
        entry = manifest["frames"][0]
        assert entry["filename"] == "frame_1_1.50s.jpg"
        assert entry["timestamp"] == 1.5
        assert entry["analysis"]["quality"] == "good"

    def test_progress_is_cumulative(self, frames):
        progress: list[float] = []
        export_library("Holiday", frames, on_progress=progress.append)
        assert progress == [50.0, 100.0]


class TestNaming:
    def test_archive_filename_collapses_whitespace(self):
        assert archive_filename("  My  Summer\tTrip ") == "My_Summer_Trip_library.zip"

    def test_png_frames_keep_extension(self):
        frame = make_frame(
            is_keeper=True,
            image="data:image/png;base64,UE5H",
        )
        archive = zipfile.ZipFile(io.BytesIO(export_library("x", [frame])))
        assert "frame_1_0.00s.png" in archive.namelist()


class TestFilterLibrary:
    def test_views(self, frames):
        assert len(filter_library(frames, LibraryView.ALL)) == 3
        assert [f.timestamp for f in filter_library(frames, "originals")] == [1.5, 3.0]
        assert [f.timestamp for f in filter_library(frames, "enhanced")] == [12.25]
