"""
Userscript models.

Entities: Script (input record of the encoder), RunAtEnum.

Note: Script is not a table. Persistence belongs to the script store, which
owns the ``encoded`` flag; the encoder only reads the record.
"""

from enum import Enum

from sqlmodel import Field, SQLModel

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RunAtEnum(str, Enum):
    """Page-lifecycle phase at which injected code runs."""

    START = "document-start"
    END = "document-end"
    IDLE = "document-idle"


# ---------------------------------------------------------------------------
# Script - encoder input
# ---------------------------------------------------------------------------


class Script(SQLModel):
    """
    A userscript as handed over by the script store.

    ``require`` and ``grant`` keep declaration order; blank entries are
    allowed and ignored by the encoder.
    """

    code: str
    encoded: bool = False
    run_at: RunAtEnum
    require: list[str] = Field(default_factory=list)
    grant: list[str] = Field(default_factory=list)
