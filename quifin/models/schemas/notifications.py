"""
Pydantic schemas for the manual test notification.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, StrictStr

class NotificationTestRequest(BaseModel):
    """Unsaved gateway settings to try out.

    Accepts snake_case or the camelCase names the settings screen sends.
    Values must be strings or null; anything else is rejected rather than coerced.
    """
    ntfy_url: Optional[StrictStr] = Field(None, alias="ntfyUrl")
    ntfy_topic: Optional[StrictStr] = Field(None, alias="ntfyTopic")
    ntfy_bearer_token: Optional[StrictStr] = Field(None, alias="ntfyBearerToken")

    model_config = ConfigDict(populate_by_name=True, json_schema_extra={
        "example": {
            "ntfyUrl": "https://ntfy.example.com",
            "ntfyTopic": "subscriptions",
            "ntfyBearerToken": "tk_example",
        }
    })

class NotificationTestResult(BaseModel):
    target_url: str
