"""
Pydantic schemas for the userscript encoder API.
"""

from pydantic import Field
from sqlmodel import SQLModel

from app.engines.userscript import ShimKindEnum
from app.models_script import RunAtEnum, Script


class ScriptEncodeIn(SQLModel):
    """Body for POST /scripts/encode."""

    code: str = Field(..., description="Raw userscript body.")
    encoded: bool = Field(
        default=False,
        description="True if the code already went through the encoder; it is returned unchanged.",
    )
    run_at: RunAtEnum = Field(..., description="document-start, document-end or document-idle.")
    require: list[str] = Field(
        default_factory=list, description="Module URLs imported before the code runs."
    )
    grant: list[str] = Field(
        default_factory=list, description="Capability names the script needs."
    )

    def to_script(self) -> Script:
        return Script(
            code=self.code,
            encoded=self.encoded,
            run_at=self.run_at,
            require=list(self.require),
            grant=list(self.grant),
        )


class ScriptEncodeOut(SQLModel):
    """Response for POST /scripts/encode."""

    skipped: bool = Field(
        default=False, description="True when the script was already encoded."
    )
    code: str
    obfuscated: bool = False


class CapabilityPublic(SQLModel):
    """One row of the capability shim table."""

    name: str
    kind: ShimKindEnum
