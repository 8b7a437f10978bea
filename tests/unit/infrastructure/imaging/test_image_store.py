"""Tests for artist-folder image files."""

import logging
from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import pytest

from catalogaudit.domain.value_objects import ImageNaming, ImageType
from catalogaudit.infrastructure.filesystem import list_files_case_insensitive, write_file_atomic
from catalogaudit.infrastructure.imaging import image_processor, image_store


class TestLookup:
    """Finding images and their dimensions."""

    def test_find_image_file_is_case_insensitive(
        self, tmp_path: Path, write_image: Callable[..., Path]
    ) -> None:
        write_image("Folder.JPG", 10, 10, fmt="JPEG")
        found = image_store.find_image_file(tmp_path, ("folder.jpg", "artist.jpg"))
        assert found == tmp_path / "Folder.JPG"

    def test_find_image_file_respects_name_order(
        self, tmp_path: Path, write_image: Callable[..., Path]
    ) -> None:
        write_image("artist.jpg", 10, 10)
        write_image("folder.jpg", 10, 10)
        assert image_store.find_image_file(tmp_path, ("folder.jpg", "artist.jpg")) == (
            tmp_path / "folder.jpg"
        )

    def test_missing_directory_finds_nothing(self, tmp_path: Path) -> None:
        assert image_store.find_image_file(tmp_path / "nope", ("folder.jpg",)) is None
        assert image_store.read_image_dimensions(tmp_path / "nope", ("folder.jpg",)) is None

    def test_read_image_dimensions_skips_undecodable(
        self, tmp_path: Path, write_image: Callable[..., Path]
    ) -> None:
        (tmp_path / "folder.jpg").write_bytes(b"not an image")
        write_image("artist.jpg", 640, 480)
        dims = image_store.read_image_dimensions(tmp_path, ("folder.jpg", "artist.jpg"))
        assert dims == (640, 480)

    def test_read_existing_image_dimensions_picks_largest(
        self, tmp_path: Path, write_image: Callable[..., Path]
    ) -> None:
        write_image("folder.jpg", 500, 500)
        write_image("poster.jpg", 1000, 1500)
        dims = image_store.read_existing_image_dimensions(
            tmp_path, ("folder.jpg", "artist.jpg", "poster.jpg")
        )
        assert dims == (1000, 1500)
        assert image_store.read_existing_image_dimensions(tmp_path, ("logo.png",)) == (0, 0)

    def test_existing_image_file_names(
        self, tmp_path: Path, write_image: Callable[..., Path]
    ) -> None:
        names = ("folder.jpg", "artist.jpg", "poster.jpg")
        assert image_store.existing_image_file_names(tmp_path, names) == ["folder.jpg"]
        write_image("poster.jpg", 10, 10)
        assert image_store.existing_image_file_names(tmp_path, names) == ["poster.jpg"]

    def test_existing_files_match_case_and_other_extensions(
        self, tmp_path: Path, write_image: Callable[..., Path]
    ) -> None:
        write_image("Folder.JPG", 10, 10, fmt="JPEG")
        write_image("artist.png", 10, 10)
        found = image_store.find_existing_image_files(tmp_path, ("folder.jpg", "artist.jpg"))
        assert found == ["Folder.JPG", "artist.png"]

    def test_existing_dimensions_include_other_extension(
        self, tmp_path: Path, write_image: Callable[..., Path]
    ) -> None:
        write_image("folder.png", 1500, 1400)
        assert image_store.read_existing_image_dimensions(tmp_path, ("folder.jpg",)) == (
            1500,
            1400,
        )

    def test_existing_image_file_names_uses_default(self, tmp_path: Path) -> None:
        names = ("folder.jpg", "artist.jpg")
        assert image_store.existing_image_file_names(tmp_path, names, "artist.jpg") == [
            "artist.jpg"
        ]
        assert image_store.existing_image_file_names(tmp_path, names, "") == []


class TestSaveImage:
    """Writing images into the artist folder."""

    def test_extension_follows_data_format(
        self, tmp_path: Path, make_image: Callable[..., bytes]
    ) -> None:
        saved = image_store.save_image(
            tmp_path, ImageType.THUMB, make_image(10, 10, fmt="PNG"), ["folder.jpg"]
        )
        assert saved == ["folder.png"]
        assert (tmp_path / "folder.png").exists()

    def test_conflicting_format_is_removed(
        self,
        tmp_path: Path,
        write_image: Callable[..., Path],
        make_image: Callable[..., bytes],
    ) -> None:
        write_image("folder.png", 10, 10)
        image_store.save_image(tmp_path, ImageType.THUMB, make_image(10, 10), ["folder.jpg"])
        assert sorted(list_files_case_insensitive(tmp_path)) == ["folder.jpg"]

    def test_other_case_is_replaced_not_duplicated(
        self,
        tmp_path: Path,
        write_image: Callable[..., Path],
        make_image: Callable[..., bytes],
    ) -> None:
        write_image("Folder.PNG", 10, 10, fmt="PNG")
        saved = image_store.save_image(
            tmp_path, ImageType.THUMB, make_image(20, 20), ["Folder.PNG"]
        )
        assert saved == ["Folder.jpg"]
        assert sorted(list_files_case_insensitive(tmp_path).values()) == ["Folder.jpg"]

    def test_same_target_written_once(
        self, tmp_path: Path, make_image: Callable[..., bytes]
    ) -> None:
        saved = image_store.save_image(
            tmp_path, ImageType.THUMB, make_image(10, 10), ["folder.png", "folder.jpg"]
        )
        assert saved == ["folder.jpg"]

    def test_cleanup_failure_is_logged_and_save_continues(
        self,
        tmp_path: Path,
        make_image: Callable[..., bytes],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with (
            patch.object(
                image_store, "cleanup_conflicting_formats", side_effect=OSError("read-only")
            ),
            caplog.at_level(logging.WARNING, logger=image_store.__name__),
        ):
            saved = image_store.save_image(
                tmp_path, ImageType.THUMB, make_image(10, 10), ["folder.jpg"]
            )

        assert saved == ["folder.jpg"]
        record = caplog.records[0]
        assert record.args[0] == "folder.jpg"
        assert record.getMessage() == (
            "failed to clean up conflicting formats for folder.jpg: read-only"
        )

    def test_logo_is_always_png(self, tmp_path: Path, make_image: Callable[..., bytes]) -> None:
        saved = image_store.save_image(tmp_path, ImageType.LOGO, make_image(40, 10), ["logo.png"])
        assert saved == ["logo.png"]
        assert image_processor.detect_format((tmp_path / "logo.png").read_bytes()) == "png"

    def test_writes_every_name(self, tmp_path: Path, make_image: Callable[..., bytes]) -> None:
        saved = image_store.save_image(
            tmp_path, ImageType.FANART, make_image(16, 9), ["fanart.jpg", "backdrop.jpg"]
        )
        assert saved == ["fanart.jpg", "backdrop.jpg"]

    def test_no_names_raises(self, tmp_path: Path, make_image: Callable[..., bytes]) -> None:
        with pytest.raises(ValueError, match="no filenames configured"):
            image_store.save_image(tmp_path, ImageType.THUMB, make_image(1, 1), [])

    def test_not_an_image_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            image_store.save_image(tmp_path, ImageType.THUMB, b"hello", ["folder.jpg"])
        assert list(tmp_path.iterdir()) == []


class TestFanartDiscovery:
    """Numbered fanart files."""

    def test_discover_in_index_order(
        self, tmp_path: Path, write_image: Callable[..., Path]
    ) -> None:
        for name in ("backdrop3.jpg", "backdrop.jpg", "backdrop2.jpg", "backdrop0.jpg"):
            write_image(name, 16, 9)
        (tmp_path / "backdrop4.txt").write_text("not an image")

        found = image_store.discover_fanart(tmp_path, "backdrop.jpg")

        assert [p.name for p in found] == ["backdrop.jpg", "backdrop2.jpg", "backdrop3.jpg"]

    def test_primary_extension_wins(
        self, tmp_path: Path, write_image: Callable[..., Path]
    ) -> None:
        write_image("fanart.png", 16, 9)
        write_image("fanart.jpg", 16, 9)
        assert [p.name for p in image_store.discover_fanart(tmp_path, "fanart.jpg")] == [
            "fanart.jpg"
        ]

    def test_missing_directory(self, tmp_path: Path) -> None:
        assert image_store.discover_fanart(tmp_path / "missing", "fanart.jpg") == []


class TestExtraneousImages:
    """Images that match no expected name."""

    def test_unexpected_images_are_listed(
        self, tmp_path: Path, write_image: Callable[..., Path]
    ) -> None:
        for name in ("folder.jpg", "backdrop.jpg", "backdrop2.jpg", "cover.jpg", "Scan.PNG"):
            write_image(name, 10, 10)
        (tmp_path / "artist.nfo").write_text("<artist/>")
        (tmp_path / "notes.txt").write_text("hi")

        extraneous = image_store.find_extraneous_images(ImageNaming.for_profile("emby"), tmp_path)

        assert extraneous == ["Scan.PNG", "cover.jpg"]

    def test_other_extension_of_expected_name_is_fine(
        self, tmp_path: Path, write_image: Callable[..., Path]
    ) -> None:
        write_image("folder.png", 10, 10)
        assert image_store.find_extraneous_images(ImageNaming(), tmp_path) == []


class TestFilesystem:
    """Atomic writes and case-insensitive listing."""

    def test_write_file_atomic_replaces_content(self, tmp_path: Path) -> None:
        target = tmp_path / "artist.nfo"
        write_file_atomic(target, "first")
        write_file_atomic(target, "second")
        assert target.read_text() == "second"
        assert [p.name for p in tmp_path.iterdir()] == ["artist.nfo"]

    def test_list_files_ignores_directories(self, tmp_path: Path) -> None:
        (tmp_path / "Sub").mkdir()
        (tmp_path / "Logo.PNG").write_bytes(b"x")
        assert list_files_case_insensitive(tmp_path) == {"logo.png": "Logo.PNG"}
