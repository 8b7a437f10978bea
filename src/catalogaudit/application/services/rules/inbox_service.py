"""Violation inbox: applying a user-chosen image candidate."""

import logging

from catalogaudit.application.services.rules.engine import Engine
from catalogaudit.application.services.rules.image_fixer import (
    Downloader,
    apply_image_candidate,
)
from catalogaudit.domain.entities import RuleViolation, ViolationStatus
from catalogaudit.domain.exceptions import EntityNotFoundException, ValidationException
from catalogaudit.domain.ports import IArtistRepository, IViolationRepository
from catalogaudit.domain.value_objects import ImageNaming, ImageType

logger = logging.getLogger(__name__)


class InboxService:
    """Acts on pending_choice violations."""

    def __init__(
        self,
        violation_repo: IViolationRepository,
        artist_repo: IArtistRepository,
        engine: Engine | None = None,
        naming: ImageNaming | None = None,
        downloader: Downloader | None = None,
        max_dimension: int = 3000,
    ) -> None:
        self._violation_repo = violation_repo
        self._artist_repo = artist_repo
        self._engine = engine
        self._naming = naming or ImageNaming()
        self._downloader = downloader
        self._max_dimension = max_dimension

    async def apply_candidate(
        self, violation_id: str, url: str, image_type: str
    ) -> RuleViolation:
        """Download the chosen candidate into the artist folder and resolve the violation.

        Only a url/type pair stored on the violation is accepted, so this cannot be
        used to make the server fetch arbitrary URLs.

        Raises:
            EntityNotFoundException: Violation or artist does not exist
            ValidationException: Violation is not awaiting a choice, or url/type is not a candidate
        """
        violation = await self._violation_repo.get_by_id(violation_id)
        if violation is None:
            raise EntityNotFoundException("RuleViolation", violation_id)
        if violation.status != ViolationStatus.PENDING_CHOICE:
            raise ValidationException(
                f"violation {violation_id} is {violation.status.value}, not pending_choice"
            )

        if not any(c.url == url and c.image_type == image_type for c in violation.candidates):
            raise ValidationException("url and image type do not match any stored candidate")
        try:
            parsed_type = ImageType(image_type)
        except ValueError as e:
            raise ValidationException(f"invalid image type {image_type!r}") from e

        artist = await self._artist_repo.get_by_id(violation.artist_id)
        if artist is None:
            raise EntityNotFoundException("Artist", violation.artist_id)

        try:
            saved = await apply_image_candidate(
                artist,
                parsed_type,
                url,
                file_names=self._naming.names_for_type(parsed_type),
                downloader=self._downloader,
                max_dimension=self._max_dimension,
            )
        except ValueError as e:
            raise ValidationException(str(e)) from e
        artist.touch()
        await self._artist_repo.update(artist)

        resolved = await self._violation_repo.set_status(violation_id, ViolationStatus.RESOLVED)
        if resolved is None:
            raise EntityNotFoundException("RuleViolation", violation_id)

        if self._engine is not None:
            evaluation = await self._engine.evaluate(artist)
            artist.health_score = evaluation.health_score
            await self._artist_repo.update(artist)

        logger.info(
            "Applied %s candidate for %s (%s), violation %s resolved",
            image_type,
            artist.name,
            ", ".join(saved),
            violation_id,
        )
        return resolved
