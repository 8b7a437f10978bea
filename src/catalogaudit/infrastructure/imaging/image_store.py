"""Artist-folder image files: lookup, fanart discovery, saving.

All functions are synchronous filesystem operations; async callers run them in
asyncio.to_thread().
"""

import logging
import os
import re
from pathlib import Path

from catalogaudit.domain.value_objects.image_naming import (
    IMAGE_EXTENSIONS,
    ImageNaming,
    ImageType,
    fanart_filename,
)
from catalogaudit.infrastructure.filesystem import (
    list_files_case_insensitive,
    write_file_atomic,
)
from catalogaudit.infrastructure.imaging import image_processor

logger = logging.getLogger(__name__)

NFO_FILENAME = "artist.nfo"

_CONFLICTING_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp")


def find_image_file(directory: str | Path, names: tuple[str, ...] | list[str]) -> Path | None:
    """First file in directory matching one of names (case-insensitive), in names order."""
    try:
        files = list_files_case_insensitive(directory)
    except OSError:
        return None
    for name in names:
        actual = files.get(name.lower())
        if actual is not None:
            return Path(directory) / actual
    return None


def read_image_dimensions(
    directory: str | Path, names: tuple[str, ...] | list[str]
) -> tuple[int, int] | None:
    """Dimensions of the first decodable image matching names, None if there is none."""
    try:
        files = list_files_case_insensitive(directory)
    except OSError:
        return None
    for name in names:
        actual = files.get(name.lower())
        if actual is None:
            continue
        try:
            return image_processor.get_file_dimensions(Path(directory) / actual)
        except OSError:
            logger.debug("cannot decode %s in %s", actual, directory)
            continue
    return None


def find_existing_image_files(
    directory: str | Path, names: tuple[str, ...] | list[str]
) -> list[str]:
    """Actual on-disk names of files matching names, in names order.

    Matching ignores case and the image extension, so folder.jpg finds
    Folder.JPG and folder.png too.
    """
    try:
        files = list_files_case_insensitive(directory)
    except OSError:
        return []
    found: list[str] = []
    for name in names:
        base, ext = os.path.splitext(name.lower())
        for candidate_ext in (ext, *_CONFLICTING_EXTENSIONS):
            actual = files.get(f"{base}{candidate_ext}")
            if actual is not None and actual not in found:
                found.append(actual)
    return found


def read_existing_image_dimensions(
    directory: str | Path, names: tuple[str, ...] | list[str]
) -> tuple[int, int]:
    """Largest (by pixel count) existing image among names, (0, 0) if none."""
    best = (0, 0)
    for actual in find_existing_image_files(directory, names):
        try:
            width, height = image_processor.get_file_dimensions(Path(directory) / actual)
        except OSError:
            continue
        if width * height > best[0] * best[1]:
            best = (width, height)
    return best


def existing_image_file_names(
    directory: str | Path,
    names: tuple[str, ...] | list[str],
    default: str | None = None,
) -> list[str]:
    """On-disk names of the images among names, or the default (first name) when none exists.

    Writing only these avoids clobbering a good poster.jpg just because
    folder.jpg was the file violating the rule.
    """
    found = find_existing_image_files(directory, names)
    if found:
        return found
    if default is None:
        default = names[0] if names else ""
    return [default] if default else []


def cleanup_conflicting_formats(directory: str | Path, file_name: str) -> list[str]:
    """Delete images sharing file_name's basename in another format or letter case.

    Saving folder.png removes folder.jpg and Folder.PNG, never folder.png itself.
    """
    base = os.path.splitext(file_name)[0].lower()
    deleted: list[str] = []
    for entry in os.scandir(directory):
        name_base, ext = os.path.splitext(entry.name.lower())
        if entry.name == file_name or name_base != base or ext not in _CONFLICTING_EXTENSIONS:
            continue
        if not entry.is_file():
            continue
        os.unlink(entry.path)
        deleted.append(entry.name)
        logger.info(
            "deleted conflicting image format %s (replaced by %s)", entry.path, file_name
        )
    return deleted


def save_image(
    directory: str | Path,
    image_type: ImageType,
    data: bytes,
    file_names: list[str] | tuple[str, ...],
) -> list[str]:
    """Write image data under every given filename.

    The extension follows the actual data format, logos are always PNG, and
    files with the same basename but another format are removed first.

    Returns:
        The filenames written

    Raises:
        ValueError: No filenames, or the data is not a supported image
        OSError: A file could not be written
    """
    if not file_names:
        raise ValueError(f"no filenames configured for image type {image_type.value}")

    image_format = image_processor.detect_format(data)
    if image_type == ImageType.LOGO and image_format != image_processor.FORMAT_PNG:
        data = image_processor.convert_to_png(data)
        image_format = image_processor.FORMAT_PNG
    ext = image_processor.extension_for_format(image_format)

    saved: list[str] = []
    for name in file_names:
        base, name_ext = os.path.splitext(name)
        # Folder.JPG stays Folder.JPG when the data is JPEG
        target_name = name if name_ext.lower() == ext else f"{base}{ext}"
        if target_name.lower() in (s.lower() for s in saved):
            continue
        try:
            cleanup_conflicting_formats(directory, target_name)
        except OSError as e:
            logger.warning(
                "failed to clean up conflicting formats for %s: %s", target_name, e
            )
        write_file_atomic(Path(directory) / target_name, data)
        saved.append(target_name)
        logger.debug("saved %s image %s (%s)", image_type.value, target_name, image_format)
    return saved


def discover_fanart(directory: str | Path, primary_name: str) -> list[Path]:
    """Fanart files for primary_name and its numbered variants, in index order.

    backdrop.jpg is index 0, backdrop2.jpg index 2, ... When several
    extensions exist for one index, the primary's extension wins.
    """
    if not primary_name:
        return []
    base, primary_ext = os.path.splitext(primary_name)
    pattern = re.compile(rf"^{re.escape(base.lower())}(\d*)$")

    try:
        entries = [e for e in os.scandir(directory) if e.is_file()]
    except OSError:
        return []

    indexed: list[tuple[int, bool, str]] = []
    for entry in entries:
        name_base, ext = os.path.splitext(entry.name)
        if ext.lower() not in IMAGE_EXTENSIONS:
            continue
        match = pattern.match(name_base.lower())
        if match is None:
            continue
        suffix = match.group(1)
        if suffix == "":
            index = 0
        elif int(suffix) > 0:
            index = int(suffix)
        else:
            continue
        indexed.append((index, ext.lower() != primary_ext.lower(), entry.name))

    indexed.sort()
    result: list[Path] = []
    last_index = -1
    for index, _not_primary_ext, name in indexed:
        if index == last_index:
            continue
        last_index = index
        result.append(Path(directory) / name)
    return result


def _with_extension_variants(name: str) -> set[str]:
    base = os.path.splitext(name)[0]
    return {name.lower()} | {f"{base}{ext}".lower() for ext in IMAGE_EXTENSIONS}


def expected_image_files(naming: ImageNaming, artist_path: str | Path | None) -> set[str]:
    """Lowercased filenames that belong in an artist folder.

    artist.nfo, every configured name per image type with each image extension,
    and numbered fanart found on disk together with its canonical name.
    """
    expected = {NFO_FILENAME}
    for image_type in ImageType:
        for name in naming.names_for_type(image_type):
            expected |= _with_extension_variants(name)

    if artist_path:
        for fanart_name in naming.names_for_type(ImageType.FANART):
            for index, path in enumerate(discover_fanart(artist_path, fanart_name)):
                expected.add(path.name.lower())
                canonical = fanart_filename(fanart_name, index, naming.kodi_numbering)
                expected |= _with_extension_variants(canonical)
    return expected


def find_extraneous_images(naming: ImageNaming, artist_path: str | Path) -> list[str]:
    """Image files in the folder that match no expected name, sorted.

    Raises:
        OSError: If the directory cannot be read
    """
    expected = expected_image_files(naming, artist_path)
    files = list_files_case_insensitive(artist_path)
    return sorted(
        actual
        for lower, actual in files.items()
        if os.path.splitext(lower)[1] in IMAGE_EXTENSIONS and lower not in expected
    )
