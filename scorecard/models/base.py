"""
Base classes separating persisted records from derived results.

Anything extending PersistedModel lives in (or is read from) storage.
Anything extending DerivedModel is recomputed on every query and must never
be written to the observation ledger; storage backends reject it.
"""

from pydantic import BaseModel, ConfigDict


class PersistedModel(BaseModel):
    """Immutable record owned by an external writer."""

    model_config = ConfigDict(frozen=True)


class DerivedModel(BaseModel):
    """Computed value with no identity beyond the query that produced it."""

    model_config = ConfigDict(frozen=True)
