"""Vessel reference data.

Vessels are not workflow entities; they supply the serial-number format
used when quotation items are renumbered (``H##`` -> ``H01, H02, ...``).
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import ValidationError

from quoteflow.errors import PreconditionFailed, ValidationFailed
from quoteflow.models import Vessel, VesselDraft
from quoteflow.store.base import DocumentStore

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"#+")


def generate_vessel_code(name: str, number: str) -> str:
    """First letter of the name plus the digits of the number (``HALUL``, ``45`` -> ``H45``)."""
    letters = re.sub(r"[^A-Z]", "", (name or "").strip().upper())
    digits = re.sub(r"[^0-9]", "", number or "")
    return f"{letters[:1]}{digits}"


def format_serial(slno_format: str, index: int) -> str:
    """Fill the first ``#`` run of ``slno_format`` with a zero-padded index.

    >>> format_serial("H##", 3)
    'H03'
    """
    match = _PLACEHOLDER.search(slno_format)
    if match is None:
        return f"{slno_format}{index}"
    width = match.end() - match.start()
    return f"{slno_format[:match.start()]}{index:0{width}d}{slno_format[match.end():]}"


class VesselService:
    """CRUD over vessels with number/code uniqueness checks."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def create(self, draft: VesselDraft) -> Vessel:
        if not draft.code:
            draft = draft.model_copy(update={"code": generate_vessel_code(draft.name, draft.number)})

        await self._ensure_unique("number", draft.number)
        await self._ensure_unique("code", draft.code)

        vessel = await self.store.add_vessel(draft)
        logger.info("Created vessel %s (%s)", vessel.name, vessel.code)
        return vessel

    async def list_vessels(self) -> list[Vessel]:
        return await self.store.list_vessels()

    async def get(self, vessel_id: str) -> Vessel:
        return await self.store.get_vessel(vessel_id)

    async def update(self, vessel_id: str, **fields: Any) -> Vessel:
        current = await self.store.get_vessel(vessel_id)
        try:
            merged = VesselDraft.model_validate({**current.model_dump(), **fields})
        except ValidationError as exc:
            raise ValidationFailed(f"Invalid vessel update: {exc}") from exc

        if merged.number != current.number:
            await self._ensure_unique("number", merged.number, exclude_id=vessel_id)
        if merged.code != current.code:
            await self._ensure_unique("code", merged.code, exclude_id=vessel_id)

        return await self.store.update_vessel(
            vessel_id,
            name=merged.name,
            number=merged.number,
            slno_format=merged.slno_format,
            code=merged.code,
        )

    async def delete(self, vessel_id: str) -> None:
        await self.store.delete_vessel(vessel_id)
        logger.info("Deleted vessel %s", vessel_id)

    async def slno_format_for(self, vessel_name: str, default: str = "H##") -> str:
        """Serial format of the vessel named on a quotation, else ``default``."""
        if not vessel_name:
            return default
        matches = await self.store.find_vessels(name=vessel_name.strip())
        return matches[0].slno_format if matches else default

    async def _ensure_unique(
        self, field: str, value: str, exclude_id: str | None = None
    ) -> None:
        existing = await self.store.find_vessels(**{field: value})
        if any(v.id != exclude_id for v in existing):
            raise PreconditionFailed(
                f"vessel_{field}_unique", f"Vessel {field} already exists: {value}"
            )
