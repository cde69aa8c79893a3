"""Records kept in the active and archive tiers."""

import re
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field

from narrative_memory.domain.models.utils import epoch_millis

_INTEGRAL = re.compile(r"-?\d+")


def normalize_unit_id(unit_id: int | str) -> int | str:
    """Integral strings become ints, so ``"5"`` and ``5`` name the same unit."""
    if isinstance(unit_id, str) and _INTEGRAL.fullmatch(unit_id.strip()):
        return int(unit_id)
    return unit_id


# Units are chapters/messages; callers use integers or orderable strings.
UnitId = Annotated[int | str, BeforeValidator(normalize_unit_id)]


def chunk_id(unit_id: UnitId, index: int) -> str:
    """Stable identifier of the ``index``-th chunk of a unit."""
    return f"unit:{unit_id}:chunk:{index}"


def summary_id(unit_id: UnitId) -> str:
    """Stable identifier of a unit's archive summary."""
    return f"summary:{unit_id}"


def unit_sort_key(unit_id: UnitId) -> tuple[int, float, str]:
    """Natural order for unit identifiers.

    Numbers (and numeric strings) sort numerically and before any other string,
    so ``"9"`` comes before ``"10"``.
    """
    if isinstance(unit_id, int | float) and not isinstance(unit_id, bool):
        return (0, float(unit_id), "")
    text = str(unit_id)
    try:
        return (0, float(text), "")
    except ValueError:
        return (1, 0.0, text)


class ChunkRecord(BaseModel):
    """A word window of one unit, resident in the active tier."""

    id: str
    text: str
    unit_id: UnitId
    chunk_index: int = Field(ge=0)
    written_at: int = Field(default_factory=epoch_millis)

    def metadata(self) -> dict[str, Any]:
        return {"unit_id": self.unit_id, "chunk_index": self.chunk_index, "written_at": self.written_at}


class SummaryRecord(BaseModel):
    """The condensed form of one archived unit."""

    id: str
    text: str
    unit_id: UnitId
    archived_at: int = Field(default_factory=epoch_millis)

    def metadata(self) -> dict[str, Any]:
        return {"unit_id": self.unit_id, "archived_at": self.archived_at}


class StoredRecord(BaseModel):
    """A record as returned by a collection store lookup."""

    id: str
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def unit_id(self) -> UnitId | None:
        unit_id = self.metadata.get("unit_id")
        return None if unit_id is None else normalize_unit_id(unit_id)


class QueryMatch(StoredRecord):
    """A record returned by a similarity query, best match first."""

    score: float


class WriteAck(BaseModel):
    conversation_id: str
    unit_id: UnitId
    chunk_ids: list[str] = Field(default_factory=list)

    @property
    def chunk_count(self) -> int:
        return len(self.chunk_ids)


class ArchiveAck(BaseModel):
    conversation_id: str
    unit_id: UnitId
    summary_id: str
    purged_chunks: int = 0
