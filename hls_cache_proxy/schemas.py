from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StreamRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_url: str = Field(..., description="The absolute URL of the HLS master playlist.")
    referer: str = Field(..., description="The normalized referer used for upstream requests.")


class VariantEntry(BaseModel):
    bandwidth: Optional[int] = Field(None, description="The variant bandwidth in bits per second.")
    resolution: Optional[str] = Field(None, description="The variant resolution as WxH.")
    file: str = Field(..., description="The path of the rewritten variant playlist.")


class StreamManifest(BaseModel):
    master: str = Field(..., description="The path of the synthesized master playlist.")
    all: List[VariantEntry] = Field(default_factory=list, description="The cached variants in playlist order.")


class ErrorResponse(BaseModel):
    error: str


class SelfCheckResponse(BaseModel):
    ok: bool = True
    time: int = Field(..., description="Server time in epoch milliseconds.")
