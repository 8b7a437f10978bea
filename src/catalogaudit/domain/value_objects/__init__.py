"""Domain value objects."""

from catalogaudit.domain.value_objects.artist_normalization import (
    name_similarity,
    normalize_artist_name,
)
from catalogaudit.domain.value_objects.image_naming import (
    DEFAULT_FILE_NAMES,
    IMAGE_EXTENSIONS,
    PLATFORM_PROFILES,
    ImageNaming,
    ImageType,
    fanart_filename,
)

__all__ = [
    "DEFAULT_FILE_NAMES",
    "IMAGE_EXTENSIONS",
    "PLATFORM_PROFILES",
    "ImageNaming",
    "ImageType",
    "fanart_filename",
    "name_similarity",
    "normalize_artist_name",
]
