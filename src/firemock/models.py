"""
firemock response models
Pydantic v2 models for the values mock operations settle with
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SendResponse(BaseModel):
    """Outcome of delivering one message in a batch"""
    success: bool = Field(..., description="Whether the message was accepted")
    message_id: Optional[str] = Field(default=None, description="Identifier of the accepted message")
    error: Optional[Any] = Field(default=None, description="Failure detail when success is False")


class BatchResponse(BaseModel):
    """Outcome of send_all / send_multicast"""
    responses: List[SendResponse] = Field(default_factory=list)
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)

    @model_validator(mode='after')
    def validate_counts(self):
        """Counts must agree with the responses list"""
        successes = sum(1 for response in self.responses if response.success)
        if self.success_count != successes:
            raise ValueError('success_count does not match responses')
        if self.failure_count != len(self.responses) - successes:
            raise ValueError('failure_count does not match responses')
        return self


class IdTokenResult(BaseModel):
    """Decoded view of a session's ID token"""
    model_config = ConfigDict(frozen=True)

    token: str
    auth_time: str
    issued_at_time: str
    expiration_time: str
    sign_in_provider: Optional[str] = None
    claims: Dict[str, Any] = Field(default_factory=dict)
