from typing import Optional

from pydantic import BaseModel, ConfigDict


class VerificationMetadata(BaseModel):
    """Task metadata handed to the engine alongside the claim result."""

    model_config = ConfigDict(extra="allow")

    domain: Optional[str] = None
    claim_type: Optional[str] = None
    task_type: Optional[str] = None
    lab_slug: Optional[str] = None
