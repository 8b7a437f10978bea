"""Built-in rule checkers and the seeded rule definitions.

Hey future me - a checker is a pure function (artist, config) -> Violation | None. "Pure" is
relative: the dimension/shape checkers read image headers from the artist folder, which is why
the engine runs the whole checker pass in a worker thread. Checkers NEVER raise. If the folder
is unreadable or an image does not decode, the checker abstains (returns None) and the artist
is not punished for our inability to look.

The registry built by build_checkers() is ORDERED: registration order is evaluation order, and
therefore the order violations show up in an EvaluationResult.
"""

import logging
import os
from collections.abc import Callable

from catalogaudit.domain.entities import Artist, Rule, RuleConfig, Violation
from catalogaudit.domain.entities import rules as r
from catalogaudit.domain.entities.rules import AutomationMode, Severity
from catalogaudit.domain.value_objects import (
    ImageNaming,
    ImageType,
    name_similarity,
    normalize_artist_name,
)
from catalogaudit.infrastructure.filesystem import list_files_case_insensitive
from catalogaudit.infrastructure.imaging import image_processor, image_store

logger = logging.getLogger(__name__)

Checker = Callable[[Artist, RuleConfig], Violation | None]

CATEGORY_NFO = "nfo"
CATEGORY_IMAGE = "image"
CATEGORY_METADATA = "metadata"

DEFAULT_THUMB_ASPECT = 1.0
DEFAULT_FANART_ASPECT = 16.0 / 9.0
DEFAULT_ASPECT_TOLERANCE = 0.1
DEFAULT_THUMB_MIN = (500, 500)
DEFAULT_FANART_MIN = (1920, 1080)
DEFAULT_BANNER_MIN = (1000, 185)
DEFAULT_LOGO_MIN_WIDTH = 400
DEFAULT_BIO_MIN_LENGTH = 10
DEFAULT_NAME_TOLERANCE = 0.8
DEFAULT_TRIM_THRESHOLD_PERCENT = 5.0
LOGO_ALPHA_THRESHOLD = 128


def _severity(config: RuleConfig) -> str:
    return config.effective_severity


# --- presence / metadata checkers -------------------------------------------


def check_nfo_exists(artist: Artist, config: RuleConfig) -> Violation | None:
    if artist.nfo_exists:
        return None
    return Violation(
        rule_id=r.RULE_NFO_EXISTS,
        rule_name="NFO file exists",
        category=CATEGORY_NFO,
        severity=Severity.ERROR.value,
        message=f'artist "{artist.name}" has no artist.nfo file',
        fixable=True,
    )


def check_nfo_has_mbid(artist: Artist, config: RuleConfig) -> Violation | None:
    if artist.musicbrainz_id:
        return None
    return Violation(
        rule_id=r.RULE_NFO_HAS_MBID,
        rule_name="NFO has MusicBrainz ID",
        category=CATEGORY_NFO,
        severity=Severity.ERROR.value,
        message=f'artist "{artist.name}" has no MusicBrainz ID',
        fixable=True,
    )


def check_thumb_exists(artist: Artist, config: RuleConfig) -> Violation | None:
    if artist.thumb_exists:
        return None
    return Violation(
        rule_id=r.RULE_THUMB_EXISTS,
        rule_name="Thumbnail image exists",
        category=CATEGORY_IMAGE,
        severity=Severity.ERROR.value,
        message=f'artist "{artist.name}" has no thumbnail image',
        fixable=True,
    )


def check_fanart_exists(artist: Artist, config: RuleConfig) -> Violation | None:
    if artist.fanart_exists:
        return None
    return Violation(
        rule_id=r.RULE_FANART_EXISTS,
        rule_name="Fanart image exists",
        category=CATEGORY_IMAGE,
        severity=Severity.WARNING.value,
        message=f'artist "{artist.name}" has no fanart image',
        fixable=True,
    )


def check_logo_exists(artist: Artist, config: RuleConfig) -> Violation | None:
    if artist.logo_exists:
        return None
    return Violation(
        rule_id=r.RULE_LOGO_EXISTS,
        rule_name="Logo image exists",
        category=CATEGORY_IMAGE,
        severity=Severity.INFO.value,
        message=f'artist "{artist.name}" has no logo image',
        fixable=True,
    )


def check_banner_exists(artist: Artist, config: RuleConfig) -> Violation | None:
    if artist.banner_exists:
        return None
    return Violation(
        rule_id=r.RULE_BANNER_EXISTS,
        rule_name="Banner image exists",
        category=CATEGORY_IMAGE,
        severity=Severity.INFO.value,
        message=f'artist "{artist.name}" has no banner image',
        fixable=True,
    )


def check_bio_exists(artist: Artist, config: RuleConfig) -> Violation | None:
    min_length = config.min_length or DEFAULT_BIO_MIN_LENGTH
    if len(artist.biography) >= min_length:
        return None

    message = f'artist "{artist.name}" has no biography'
    if artist.biography:
        message = (
            f'artist "{artist.name}" biography is too short '
            f"({len(artist.biography)} chars, minimum {min_length})"
        )
    return Violation(
        rule_id=r.RULE_BIO_EXISTS,
        rule_name="Biography exists",
        category=CATEGORY_METADATA,
        severity=_severity(config),
        message=message,
        fixable=True,
    )


def check_artist_id_mismatch(artist: Artist, config: RuleConfig) -> Violation | None:
    """Folder basename vs. artist name and sort name, by normalized Levenshtein similarity."""
    if not artist.path:
        return None

    folder_name = os.path.basename(os.path.normpath(artist.path))
    folder = normalize_artist_name(folder_name)
    candidates = [normalize_artist_name(artist.name)]
    if artist.sort_name:
        candidates.append(normalize_artist_name(artist.sort_name))
    if folder in candidates:
        return None

    tolerance = config.tolerance or DEFAULT_NAME_TOLERANCE
    similarity = max(name_similarity(folder, candidate) for candidate in candidates)
    if similarity >= tolerance:
        return None

    return Violation(
        rule_id=r.RULE_ARTIST_ID_MISMATCH,
        rule_name="Artist/ID mismatch",
        category=CATEGORY_METADATA,
        severity=_severity(config),
        message=(
            f'folder name "{folder_name}" does not match artist name '
            f'"{artist.name}" ({similarity * 100:.0f}% similar)'
        ),
        fixable=False,
    )


# --- filesystem checkers (need the naming profile) --------------------------


def _make_thumb_square(naming: ImageNaming) -> Checker:
    names = naming.lookup_names(ImageType.THUMB)

    def check_thumb_square(artist: Artist, config: RuleConfig) -> Violation | None:
        if not artist.thumb_exists or not artist.path:
            return None
        dims = image_store.read_image_dimensions(artist.path, names)
        if dims is None or dims[1] == 0:
            return None

        ratio = config.aspect_ratio or DEFAULT_THUMB_ASPECT
        tolerance = config.tolerance or DEFAULT_ASPECT_TOLERANCE
        width, height = dims
        if image_processor.validate_aspect_ratio(width, height, ratio, tolerance):
            return None
        return Violation(
            rule_id=r.RULE_THUMB_SQUARE,
            rule_name="Thumbnail is square",
            category=CATEGORY_IMAGE,
            severity=_severity(config),
            message=(
                f'artist "{artist.name}" thumbnail aspect ratio {width / height:.2f} '
                f"does not match expected {ratio:.2f}"
            ),
            fixable=True,
        )

    return check_thumb_square


def _make_min_resolution(
    naming: ImageNaming,
    image_type: ImageType,
    rule_id: str,
    rule_name: str,
    label: str,
    default_min: tuple[int, int],
) -> Checker:
    names = naming.lookup_names(image_type)

    def check_min_resolution(artist: Artist, config: RuleConfig) -> Violation | None:
        if not artist.has_image(image_type) or not artist.path:
            return None
        dims = image_store.read_image_dimensions(artist.path, names)
        if dims is None:
            return None

        min_w = config.min_width or default_min[0]
        min_h = config.min_height or default_min[1]
        width, height = dims
        if width >= min_w and height >= min_h:
            return None
        return Violation(
            rule_id=rule_id,
            rule_name=rule_name,
            category=CATEGORY_IMAGE,
            severity=_severity(config),
            message=(
                f'artist "{artist.name}" {label} is {width}x{height}, '
                f"minimum required is {min_w}x{min_h}"
            ),
            fixable=True,
        )

    check_min_resolution.__name__ = f"check_{rule_id}"
    return check_min_resolution


def _make_fanart_aspect(naming: ImageNaming) -> Checker:
    names = naming.lookup_names(ImageType.FANART)

    def check_fanart_aspect(artist: Artist, config: RuleConfig) -> Violation | None:
        if not artist.fanart_exists or not artist.path:
            return None
        dims = image_store.read_image_dimensions(artist.path, names)
        if dims is None or dims[1] == 0:
            return None

        ratio = config.aspect_ratio or DEFAULT_FANART_ASPECT
        tolerance = config.tolerance or DEFAULT_ASPECT_TOLERANCE
        width, height = dims
        if image_processor.validate_aspect_ratio(width, height, ratio, tolerance):
            return None
        return Violation(
            rule_id=r.RULE_FANART_ASPECT,
            rule_name="Fanart aspect ratio",
            category=CATEGORY_IMAGE,
            severity=_severity(config),
            message=(
                f'artist "{artist.name}" fanart aspect ratio {width / height:.3f}, '
                f"expected {ratio:.3f}"
            ),
            fixable=True,
        )

    return check_fanart_aspect


def _make_logo_min_res(naming: ImageNaming) -> Checker:
    names = naming.lookup_names(ImageType.LOGO)

    def check_logo_min_res(artist: Artist, config: RuleConfig) -> Violation | None:
        if not artist.logo_exists or not artist.path:
            return None
        dims = image_store.read_image_dimensions(artist.path, names)
        if dims is None:
            return None

        min_w = config.min_width or DEFAULT_LOGO_MIN_WIDTH
        if dims[0] >= min_w:
            return None
        return Violation(
            rule_id=r.RULE_LOGO_MIN_RES,
            rule_name="Logo minimum width",
            category=CATEGORY_IMAGE,
            severity=_severity(config),
            message=f'artist "{artist.name}" logo is {dims[0]}px wide, minimum is {min_w}px',
            fixable=True,
        )

    return check_logo_min_res


def find_png_logo(naming: ImageNaming, artist_path: str) -> str | None:
    """Path of the first logo name present on disk as a .png, if any."""
    try:
        files = list_files_case_insensitive(artist_path)
    except OSError:
        return None
    for name in naming.lookup_names(ImageType.LOGO):
        actual = files.get(name.lower())
        if actual is not None and actual.lower().endswith(".png"):
            return os.path.join(artist_path, actual)
    return None


def _make_logo_trimmable(naming: ImageNaming) -> Checker:
    def check_logo_trimmable(artist: Artist, config: RuleConfig) -> Violation | None:
        if not artist.logo_exists or not artist.path:
            return None
        logo_path = find_png_logo(naming, artist.path)
        if logo_path is None:
            return None

        try:
            with open(logo_path, "rb") as f:
                data = f.read()
            content, original = image_processor.trim_alpha_bounds(data, LOGO_ALPHA_THRESHOLD)
        except (OSError, ValueError) as e:
            logger.debug("cannot inspect logo %s: %s", logo_path, e)
            return None

        orig_w = original[2] - original[0]
        orig_h = original[3] - original[1]
        if orig_w == 0 or orig_h == 0 or content == original:
            return None

        threshold = config.threshold_percent or DEFAULT_TRIM_THRESHOLD_PERCENT
        threshold = min(max(threshold, 0.0), 100.0) / 100.0

        left = (content[0] - original[0]) / orig_w
        right = (original[2] - content[2]) / orig_w
        top = (content[1] - original[1]) / orig_h
        bottom = (original[3] - content[3]) / orig_h
        if max(left, right, top, bottom) <= threshold:
            return None

        return Violation(
            rule_id=r.RULE_LOGO_TRIMMABLE,
            rule_name="Logo transparent padding",
            category=CATEGORY_IMAGE,
            severity=_severity(config),
            message=(
                f'artist "{artist.name}" logo has excess transparent padding '
                f"(left {left * 100:.1f}%, right {right * 100:.1f}%, "
                f"top {top * 100:.1f}%, bottom {bottom * 100:.1f}%)"
            ),
            fixable=True,
        )

    return check_logo_trimmable


def _make_extraneous_images(naming: ImageNaming) -> Checker:
    def check_extraneous_images(artist: Artist, config: RuleConfig) -> Violation | None:
        if not artist.path:
            return None
        try:
            extraneous = image_store.find_extraneous_images(naming, artist.path)
        except OSError:
            return None
        if not extraneous:
            return None
        return Violation(
            rule_id=r.RULE_EXTRANEOUS_IMAGES,
            rule_name="Extraneous image files",
            category=CATEGORY_IMAGE,
            severity=_severity(config),
            message=(
                f'artist "{artist.name}" has {len(extraneous)} extraneous image file(s): '
                f"{', '.join(extraneous)}"
            ),
            fixable=True,
        )

    return check_extraneous_images


def build_checkers(naming: ImageNaming | None = None) -> dict[str, Checker]:
    """Build the ordered checker registry for a naming profile."""
    naming = naming or ImageNaming()
    return {
        r.RULE_NFO_EXISTS: check_nfo_exists,
        r.RULE_NFO_HAS_MBID: check_nfo_has_mbid,
        r.RULE_THUMB_EXISTS: check_thumb_exists,
        r.RULE_THUMB_SQUARE: _make_thumb_square(naming),
        r.RULE_THUMB_MIN_RES: _make_min_resolution(
            naming,
            ImageType.THUMB,
            r.RULE_THUMB_MIN_RES,
            "Thumbnail minimum resolution",
            "thumbnail",
            DEFAULT_THUMB_MIN,
        ),
        r.RULE_FANART_EXISTS: check_fanart_exists,
        r.RULE_LOGO_EXISTS: check_logo_exists,
        r.RULE_BIO_EXISTS: check_bio_exists,
        r.RULE_FANART_MIN_RES: _make_min_resolution(
            naming,
            ImageType.FANART,
            r.RULE_FANART_MIN_RES,
            "Fanart minimum resolution",
            "fanart",
            DEFAULT_FANART_MIN,
        ),
        r.RULE_FANART_ASPECT: _make_fanart_aspect(naming),
        r.RULE_LOGO_MIN_RES: _make_logo_min_res(naming),
        r.RULE_BANNER_EXISTS: check_banner_exists,
        r.RULE_BANNER_MIN_RES: _make_min_resolution(
            naming,
            ImageType.BANNER,
            r.RULE_BANNER_MIN_RES,
            "Banner minimum resolution",
            "banner",
            DEFAULT_BANNER_MIN,
        ),
        r.RULE_ARTIST_ID_MISMATCH: check_artist_id_mismatch,
        r.RULE_LOGO_TRIMMABLE: _make_logo_trimmable(naming),
        r.RULE_EXTRANEOUS_IMAGES: _make_extraneous_images(naming),
    }


# Which image type each image rule is about. Used by the image fixer.
RULE_IMAGE_TYPES: dict[str, ImageType] = {
    r.RULE_THUMB_EXISTS: ImageType.THUMB,
    r.RULE_THUMB_SQUARE: ImageType.THUMB,
    r.RULE_THUMB_MIN_RES: ImageType.THUMB,
    r.RULE_FANART_EXISTS: ImageType.FANART,
    r.RULE_FANART_MIN_RES: ImageType.FANART,
    r.RULE_FANART_ASPECT: ImageType.FANART,
    r.RULE_LOGO_EXISTS: ImageType.LOGO,
    r.RULE_LOGO_MIN_RES: ImageType.LOGO,
    r.RULE_BANNER_EXISTS: ImageType.BANNER,
    r.RULE_BANNER_MIN_RES: ImageType.BANNER,
}


# --- seeded rule definitions -------------------------------------------------


def default_rules() -> list[Rule]:
    """The built-in rules, in registry order."""
    return [
        Rule(
            id=r.RULE_NFO_EXISTS,
            name="NFO file exists",
            description="Artist directory must contain an artist.nfo file",
            category=CATEGORY_NFO,
            config=RuleConfig(severity="error"),
        ),
        Rule(
            id=r.RULE_NFO_HAS_MBID,
            name="NFO has MusicBrainz ID",
            description="The artist.nfo file must contain a MusicBrainz artist ID",
            category=CATEGORY_NFO,
            config=RuleConfig(severity="error"),
        ),
        Rule(
            id=r.RULE_THUMB_EXISTS,
            name="Thumbnail image exists",
            description="Artist directory must contain a thumbnail image (folder.jpg/png)",
            category=CATEGORY_IMAGE,
            config=RuleConfig(severity="error"),
        ),
        Rule(
            id=r.RULE_THUMB_SQUARE,
            name="Thumbnail is square",
            description=(
                "Thumbnail must be approximately square (1:1 ratio). Violations are fixed "
                "by fetching a square replacement from providers; the existing image is "
                "not cropped."
            ),
            category=CATEGORY_IMAGE,
            config=RuleConfig(aspect_ratio=1.0, tolerance=0.1, severity="warning"),
        ),
        Rule(
            id=r.RULE_THUMB_MIN_RES,
            name="Thumbnail minimum resolution",
            description=(
                "Thumbnail must meet the minimum resolution. Violations are fixed by "
                "fetching a higher-resolution replacement from providers."
            ),
            category=CATEGORY_IMAGE,
            config=RuleConfig(min_width=500, min_height=500, severity="warning"),
        ),
        Rule(
            id=r.RULE_FANART_EXISTS,
            name="Fanart image exists",
            description="Artist directory must contain a fanart/backdrop image",
            category=CATEGORY_IMAGE,
            config=RuleConfig(severity="warning"),
        ),
        Rule(
            id=r.RULE_LOGO_EXISTS,
            name="Logo image exists",
            description="Artist directory must contain a logo image (logo.png)",
            category=CATEGORY_IMAGE,
            config=RuleConfig(severity="info"),
        ),
        Rule(
            id=r.RULE_BIO_EXISTS,
            name="Biography exists",
            description="Artist must have a biography populated",
            category=CATEGORY_METADATA,
            config=RuleConfig(min_length=10, severity="warning"),
        ),
        Rule(
            id=r.RULE_FANART_MIN_RES,
            name="Fanart minimum resolution",
            description=(
                "Fanart/backdrop must meet the minimum resolution. Violations are fixed "
                "by fetching a higher-resolution replacement from providers."
            ),
            category=CATEGORY_IMAGE,
            enabled=False,
            config=RuleConfig(min_width=1920, min_height=1080, severity="warning"),
        ),
        Rule(
            id=r.RULE_FANART_ASPECT,
            name="Fanart aspect ratio",
            description=(
                "Fanart/backdrop should match the target aspect ratio. Violations are "
                "fixed by fetching a correctly-proportioned replacement from providers; "
                "the existing image is not cropped."
            ),
            category=CATEGORY_IMAGE,
            enabled=False,
            config=RuleConfig(aspect_ratio=16.0 / 9.0, tolerance=0.1, severity="info"),
        ),
        Rule(
            id=r.RULE_LOGO_MIN_RES,
            name="Logo minimum width",
            description=(
                "Logo should meet the minimum width for legibility. Violations are fixed "
                "by fetching a higher-resolution logo from providers."
            ),
            category=CATEGORY_IMAGE,
            enabled=False,
            config=RuleConfig(min_width=400, severity="info"),
        ),
        Rule(
            id=r.RULE_BANNER_EXISTS,
            name="Banner image exists",
            description="Artist directory should contain a banner image",
            category=CATEGORY_IMAGE,
            enabled=False,
            config=RuleConfig(severity="info"),
        ),
        Rule(
            id=r.RULE_BANNER_MIN_RES,
            name="Banner minimum resolution",
            description=(
                "Banner must meet the minimum resolution. Violations are fixed by "
                "fetching a higher-resolution replacement from providers."
            ),
            category=CATEGORY_IMAGE,
            enabled=False,
            config=RuleConfig(min_width=1000, min_height=185, severity="info"),
        ),
        Rule(
            id=r.RULE_ARTIST_ID_MISMATCH,
            name="Artist/ID mismatch",
            description=(
                "Folder name should match the artist name or sort name. Mismatches "
                "usually mean the folder was matched to the wrong artist and need a "
                "manual review."
            ),
            category=CATEGORY_METADATA,
            enabled=False,
            config=RuleConfig(tolerance=0.8, severity="warning"),
        ),
        Rule(
            id=r.RULE_LOGO_TRIMMABLE,
            name="Logo transparent padding",
            description=(
                "PNG logos should not carry wide transparent borders. Violations are "
                "fixed by cropping the padding."
            ),
            category=CATEGORY_IMAGE,
            enabled=False,
            config=RuleConfig(threshold_percent=5, severity="info"),
        ),
        Rule(
            id=r.RULE_EXTRANEOUS_IMAGES,
            name="Extraneous image files",
            description=(
                "Flags image files that do not match filenames configured in the active "
                "platform profile. Extra files can cause duplicate or incorrect artwork "
                "on media servers. Auto-fix deletes them; manual mode lets you review "
                "changes first."
            ),
            category=CATEGORY_IMAGE,
            automation_mode=AutomationMode.MANUAL,
            config=RuleConfig(severity="warning"),
        ),
    ]
