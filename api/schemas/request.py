# WORKFLOW: Pydantic request schemas for API input validation.
# Used by: FastAPI endpoints for request validation and documentation
# Schemas include:
# 1. StopWordRequest - For stop-word create/update
# 2. KeyWordRequest - For key-word create/update (with FEACN codes)
# 3. FeacnOrderToggleRequest - For enabling/disabling a FEACN order
#
# Validation flow: HTTP request -> Pydantic validation -> Endpoint processing
# Morphology support is checked by the vocabulary service, not here.

from pydantic import BaseModel, Field, validator
from typing import Optional, List

from services.word_matcher import MatchType


class StopWordRequest(BaseModel):
    """Request schema for stop-word endpoints."""
    word: str = Field(..., min_length=1, max_length=256, description="Word or phrase")
    match_type_id: int = Field(..., description="Match type id (1, 11, 21, 41, 51)")

    @validator('word')
    def validate_word(cls, v):
        if not v.strip():
            raise ValueError('Word must not be blank')
        return v.strip()

    @validator('match_type_id')
    def validate_match_type(cls, v):
        if v not in {m.value for m in MatchType}:
            raise ValueError(f'Unknown match type: {v}')
        return v


class KeyWordRequest(StopWordRequest):
    """Request schema for key-word endpoints."""
    feacn_codes: List[str] = Field(default_factory=list, description="Associated 10-digit FEACN codes")
    insert_before: Optional[str] = Field(None, description="Text inserted before the product description")
    insert_after: Optional[str] = Field(None, description="Text inserted after the product description")


class FeacnOrderToggleRequest(BaseModel):
    """Request schema for enabling or disabling a FEACN order."""
    enabled: bool = Field(..., description="Whether the order's prefix rules apply")
