from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class WebhookAck(BaseModel):
    """Immediate acknowledgement of POST /webhook; the run continues in the background."""

    message: str
    page_id: str
    timestamp: datetime


class HealthResponse(BaseModel):
    message: str
    status: Literal["healthy", "unhealthy"]
    version: str
    endpoints: dict[str, str]
    config: dict[str, str]
    missing: list[str] = []
    timestamp: datetime
    error: Optional[str] = None
