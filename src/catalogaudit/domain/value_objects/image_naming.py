"""Image type and filename conventions for artist folders."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum


class ImageType(str, Enum):
    """Artist image kinds."""

    THUMB = "thumb"
    FANART = "fanart"
    LOGO = "logo"
    BANNER = "banner"


IMAGE_EXTENSIONS: tuple[str, ...] = (".jpg", ".jpeg", ".png")

# Known filenames used by media servers, primary name first.
DEFAULT_FILE_NAMES: dict[ImageType, tuple[str, ...]] = {
    ImageType.THUMB: (
        "folder.jpg",
        "folder.png",
        "artist.jpg",
        "artist.png",
        "poster.jpg",
        "poster.png",
    ),
    ImageType.FANART: ("fanart.jpg", "fanart.png", "backdrop.jpg", "backdrop.png"),
    ImageType.LOGO: ("logo.png", "logo-white.png"),
    ImageType.BANNER: ("banner.jpg", "banner.png"),
}


@dataclass(frozen=True)
class ImageNaming:
    """Filename conventions for one media platform.

    A profile maps every image type to its list of filenames. The first name is
    the primary one used when writing a new image; the others are still
    recognized as canonical when already on disk.
    """

    names: dict[ImageType, tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_FILE_NAMES)
    )
    # Kodi numbers extra fanart from 1 (fanart1.jpg), everyone else from 2 (backdrop2.jpg)
    kodi_numbering: bool = False

    def names_for_type(self, image_type: ImageType) -> tuple[str, ...]:
        return self.names.get(image_type, ())

    def primary(self, image_type: ImageType) -> str:
        names = self.names_for_type(image_type)
        return names[0] if names else ""

    def lookup_names(self, image_type: ImageType) -> tuple[str, ...]:
        """Profile names first, then the well-known defaults, without duplicates.

        This is where an existing image may sit, even under a profile that would
        never write that name itself.
        """
        names: list[str] = []
        for name in (*self.names_for_type(image_type), *DEFAULT_FILE_NAMES[image_type]):
            if name.lower() not in (n.lower() for n in names):
                names.append(name)
        return tuple(names)

    @classmethod
    def for_profile(cls, profile: str | None) -> ImageNaming:
        """Build the naming for a platform profile id (None means defaults)."""
        if profile is None:
            return cls()
        try:
            names = PLATFORM_PROFILES[profile.lower()]
        except KeyError as e:
            raise ValueError(f"Unknown platform profile: {profile}") from e
        return cls(names=dict(names), kodi_numbering=profile.lower() == "kodi")


PLATFORM_PROFILES: dict[str, dict[ImageType, tuple[str, ...]]] = {
    "emby": {
        ImageType.THUMB: ("folder.jpg",),
        ImageType.FANART: ("backdrop.jpg",),
        ImageType.LOGO: ("logo.png",),
        ImageType.BANNER: ("banner.jpg",),
    },
    "jellyfin": {
        ImageType.THUMB: ("folder.jpg",),
        ImageType.FANART: ("backdrop.jpg",),
        ImageType.LOGO: ("logo.png",),
        ImageType.BANNER: ("banner.jpg",),
    },
    "kodi": {
        ImageType.THUMB: ("folder.jpg",),
        ImageType.FANART: ("fanart.jpg",),
        ImageType.LOGO: ("logo.png",),
        ImageType.BANNER: ("banner.jpg",),
    },
    "plex": {
        ImageType.THUMB: ("artist.jpg",),
        ImageType.FANART: ("fanart.jpg",),
        ImageType.LOGO: ("logo.png",),
        ImageType.BANNER: ("banner.jpg",),
    },
}


def fanart_filename(primary_name: str, index: int, kodi_numbering: bool) -> str:
    """Return the filename for the fanart at a 0-based index.

    Index 0 is the primary name. Additional fanart is numbered
    base2.ext, base3.ext, ... or, with Kodi numbering, base1.ext, base2.ext, ...
    """
    if index == 0:
        return primary_name
    base, ext = os.path.splitext(primary_name)
    n = index if kodi_numbering else index + 1
    return f"{base}{n}{ext}"
