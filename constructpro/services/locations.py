from dataclasses import dataclass

from constructpro.core.config import settings
from constructpro.services.errors import ValidationFailed

LOCATION_TYPES = ("STORE", "SITE")

NO_REFERENCE = ""
NO_PROJECT = 0


@dataclass(frozen=True)
class LocationKey:
    """Address of one inventory balance.

    Optional parts are normalized to sentinels (``""`` for the reference and
    ``0`` for the project) so equal locations always hash and compare equal.
    """

    location_type: str
    reference: str = NO_REFERENCE
    project_id: int = NO_PROJECT

    @classmethod
    def of(
        cls,
        location_type: str,
        reference: str | None = None,
        project_id: int | None = None,
    ) -> "LocationKey":
        normalized_type = (location_type or "").strip().upper()
        if normalized_type not in LOCATION_TYPES:
            allowed = ", ".join(LOCATION_TYPES)
            raise ValidationFailed.for_field("location_type", f"Invalid location type. Allowed: {allowed}")
        if project_id is not None and project_id < 0:
            raise ValidationFailed.for_field("project_id", "project_id cannot be negative")
        return cls(
            location_type=normalized_type,
            reference=(reference or "").strip(),
            project_id=project_id or NO_PROJECT,
        )

    @classmethod
    def store(cls, reference: str | None = None) -> "LocationKey":
        return cls.of("STORE", reference or settings.default_store_reference)

    @classmethod
    def site(cls, project_id: int, reference: str | None = None) -> "LocationKey":
        return cls.of("SITE", reference or settings.default_site_reference, project_id)

    @property
    def label(self) -> str:
        parts = [self.location_type]
        if self.reference:
            parts.append(self.reference)
        if self.project_id:
            parts.append(f"project {self.project_id}")
        return "/".join(parts)

    def as_dict(self) -> dict:
        return {
            "location_type": self.location_type,
            "reference": self.reference,
            "project_id": self.project_id,
        }
