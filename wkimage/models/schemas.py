"""
Pydantic Models and Schemas
===========================

Core data models for renderer options, process outcomes, API requests/responses
and health reporting.
"""

from typing import Optional, Dict, Any, Literal
from datetime import datetime, timezone
from enum import Enum
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# Enums
class ImageFormat(str, Enum):
    """Typical image formats supported by wkhtmltoimage."""
    JPEG = "jpg"
    PNG = "png"
    BMP = "bmp"

    @property
    def media_type(self) -> str:
        """MIME type of the format."""
        return {
            ImageFormat.JPEG: "image/jpeg",
            ImageFormat.PNG: "image/png",
            ImageFormat.BMP: "image/bmp",
        }[self]


class ProcessPriority(str, Enum):
    """Scheduling priority of the renderer process."""
    BELOW_NORMAL = "below_normal"
    NORMAL = "normal"
    ABOVE_NORMAL = "above_normal"
    HIGH = "high"
    REALTIME = "realtime"


# Rendering Models
class RenderOptions(BaseModel):
    """Options for a single wkhtmltoimage run."""
    model_config = ConfigDict(frozen=True)

    zoom: float = Field(1.0, gt=0, description="Zoom factor (omitted from command line when 1.0)")
    width: int = Field(0, ge=0, description="Minimum image width, 0 = auto")
    height: int = Field(0, ge=0, description="Minimum image height, 0 = auto")
    image_format: Optional[str] = Field(None, description="Output format tag, e.g. png/jpg/bmp")
    custom_args: str = Field("", description="Extra command line arguments, appended verbatim")
    priority: ProcessPriority = Field(ProcessPriority.NORMAL, description="Process priority")
    execution_timeout: Optional[float] = Field(
        None, gt=0, description="Execution timeout in seconds, None = no limit"
    )


class ExitOutcome(BaseModel):
    """What the renderer left behind once it exited."""
    model_config = ConfigDict(frozen=True)

    exit_code: int = Field(..., description="Process exit code")
    last_error_line: str = Field("", description="Last non-empty stderr line")
    output_size: int = Field(0, ge=0, description="Bytes produced by the renderer")

    @property
    def output_not_empty(self) -> bool:
        return self.output_size > 0


class RenderResult(BaseModel):
    """Result of a successful render."""
    output_size: int = Field(..., description="Image size in bytes")
    exit_code: int = Field(..., description="Renderer exit code")
    last_error_line: str = Field("", description="Last non-empty stderr line")
    elapsed: float = Field(0.0, description="Render time in seconds")


# API Request/Response Models
class RenderRequest(BaseModel):
    """Request model for HTML to image rendering."""
    # Unknown fields such as raw tool arguments are rejected
    model_config = ConfigDict(extra="forbid")

    html: Optional[str] = Field(None, min_length=1, description="HTML content to render")
    url: Optional[str] = Field(None, min_length=1, description="http(s) URL to render")
    image_format: ImageFormat = Field(ImageFormat.PNG, description="Output image format")

    # Per-request overrides of the converter defaults
    zoom: Optional[float] = Field(None, gt=0, description="Zoom factor")
    width: Optional[int] = Field(None, ge=0, description="Minimum image width")
    height: Optional[int] = Field(None, ge=0, description="Minimum image height")
    timeout: Optional[float] = Field(None, gt=0, le=300, description="Execution timeout in seconds")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        """Restrict url to absolute http(s) URLs."""
        if v is None:
            return v
        parsed = urlparse(v)
        if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
            raise ValueError("url must be an absolute http or https URL")
        return v

    @model_validator(mode="after")
    def validate_source(self) -> "RenderRequest":
        """Exactly one of html or url must be given."""
        if (self.html is None) == (self.url is None):
            raise ValueError("Exactly one of 'html' or 'url' must be provided")
        return self

    def option_overrides(self) -> Dict[str, Any]:
        """Render option fields set on this request."""
        overrides: Dict[str, Any] = {
            "zoom": self.zoom,
            "width": self.width,
            "height": self.height,
            "execution_timeout": self.timeout,
        }
        return {key: value for key, value in overrides.items() if value is not None}


class HealthStatus(BaseModel):
    """Health check status."""
    status: Literal["healthy", "degraded"] = Field(..., description="Overall status")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Check timestamp"
    )
    version: str = Field(..., description="Application version")
    tool_available: bool = Field(..., description="Whether the renderer executable exists")
    tool_path: str = Field(..., description="Resolved renderer executable path")


class ErrorResponse(BaseModel):
    """Standard error response model."""
    error: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(None, description="Error code")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Error timestamp"
    )
    request_id: Optional[str] = Field(None, description="Request identifier for tracking")
