"""Profile storage and the locale/timezone lookups derived from it."""
import json

from pydantic import ValidationError as PydanticValidationError

from gym_tracker.config.settings import get_settings
from gym_tracker.core.error_handlers import validation_error_from
from gym_tracker.core.exceptions import ValidationError
from gym_tracker.core.logging import get_logger
from gym_tracker.core.transactions import transactional
from gym_tracker.repositories.profile_repository import ProfileRepository
from gym_tracker.schemas.profile import ProfileData, is_profile_complete
from gym_tracker.services.base import BaseService

logger = get_logger(__name__)


def get_localized_name(names: dict | None, locale: str | None, fallback: str) -> str:
    """locale -> "en" -> fallback."""
    if not names:
        return fallback
    if locale and names.get(locale):
        return names[locale]
    return names.get("en") or fallback


class ProfileService(BaseService):
    def __init__(self, session, user_id: int | None = None):
        super().__init__(session, user_id)
        self._repo = ProfileRepository(session)

    async def get_profile(self) -> dict:
        return await self._repo.get_data(self.user_id)

    @transactional()
    async def update_profile(self, data: dict) -> dict:
        """Merge `data` into the stored profile and return the result."""
        try:
            incoming = ProfileData.model_validate(data)
        except PydanticValidationError as e:
            raise validation_error_from(e) from e

        current = ProfileData.model_validate(await self._repo.get_data(self.user_id))
        document = current.merge(incoming).to_document()

        limit = get_settings().max_profile_size_bytes
        size = len(json.dumps(document).encode("utf-8"))
        if size > limit:
            raise ValidationError("data", f"profile would be {size} bytes, limit is {limit}", {"field": "data", "size": size})

        saved = await self._repo.save_data(self.user_id, document)
        logger.info("profile_updated", fields=sorted(incoming.model_fields_set))
        return saved

    async def get_user_timezone(self) -> str:
        tz = await self._repo.get_field(self.user_id, "timezone")
        return tz or get_settings().default_timezone

    async def get_user_locale(self) -> str:
        settings = get_settings()
        language = await self._repo.get_field(self.user_id, "language")
        if language in settings.supported_locales:
            return language
        return settings.default_locale

    async def requires_validation(self) -> bool:
        value = await self._repo.get_field(self.user_id, "requires_validation")
        return value == "true"

    async def summary(self) -> dict:
        data = await self.get_profile()
        return {"profile": data, "complete": is_profile_complete(data)}
