# =============================================================================
# Request Models — Pydantic V2 Schemas
# =============================================================================
#
# Only shape is checked here. Whether video_url points at a real video is
# decided by validate_video_url() inside the pipeline, so the API and
# direct callers get the same InvalidUrl error.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field


class AnalyzeRequest(BaseModel):
    """
    Request body for POST /analyze.

    Example:
        {
            "video_url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "brand_url": "https://www.example.com/about",
            "include_draft": true
        }
    """

    video_url: str = Field(
        ...,
        min_length=1,
        max_length=2048,
        description="YouTube video URL (watch, youtu.be, shorts, embed, live)",
    )
    brand_url: str = Field(
        ...,
        min_length=1,
        max_length=2048,
        description="Public web page describing the brand",
    )
    include_draft: bool = Field(
        default=False,
        description="Ask the Analyst for a draft engagement comment",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "video_url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
                    "brand_url": "https://www.example.com/about",
                    "include_draft": True,
                },
            ],
        },
    )
