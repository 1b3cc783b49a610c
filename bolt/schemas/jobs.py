from __future__ import annotations

import re
from typing import Any, List, Optional

from pydantic import AnyHttpUrl, BaseModel, Field, field_validator

from bolt.db.enums import ReportFormatEnum

AD_COPY_CHANNELS = ("Google", "Linkedin", "Email", "Reddit", "Twitter", "Facebook")
_CHANNELS_RE = re.compile(
    r"^(%s)(,\s*(%s))*$" % ("|".join(AD_COPY_CHANNELS), "|".join(AD_COPY_CHANNELS))
)


class AdCopyInputs(BaseModel):
    campaign_name: str = Field(..., min_length=1)
    input_channels: str
    input_content_types: str = ""
    landing_page_content: str = Field(..., min_length=1)
    landing_page_url: AnyHttpUrl
    content_material: str = ""
    additional_information: str = ""
    keywords: str = ""
    internal_knowledge: str = ""
    asset_link: Optional[AnyHttpUrl] = None
    tone_and_language: str = ""

    @field_validator("input_channels")
    @classmethod
    def validate_channels(cls, value: str) -> str:
        cleaned = value.strip()
        if not _CHANNELS_RE.fullmatch(cleaned):
            raise ValueError(f"input_channels must be a comma separated list of: {', '.join(AD_COPY_CHANNELS)}")
        return cleaned

    @field_validator("asset_link", mode="before")
    @classmethod
    def blank_asset_link(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def as_params(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["asset_link"] = data.get("asset_link") or ""
        return data


class AdCopySubmitRequest(BaseModel):
    inputs: AdCopyInputs


class AdCopyUpdateRequest(BaseModel):
    params: Optional[dict[str, Any]] = None
    content: Optional[Any] = None


class ContentBriefRequest(BaseModel):
    keyword: str = Field(..., min_length=1)
    competitors: List[str] = Field(default_factory=list)
    target_audience: Optional[str] = None

    @field_validator("keyword")
    @classmethod
    def strip_keyword(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("keyword is required")
        return cleaned


class AudienceAnalysisRequest(BaseModel):
    websiteUrl: AnyHttpUrl
    businessPersona: str = Field(..., min_length=1)
    jobFunctions: List[str] = Field(..., min_length=1)


class GA4ReportRequest(BaseModel):
    propertyId: str = Field(..., min_length=1)
    startDate: str = Field(..., min_length=1)
    endDate: str = Field(..., min_length=1)
    metrics: List[str] = Field(..., min_length=1)
    dimensions: List[str] = Field(..., min_length=1)
    filters: Optional[dict[str, Any]] = None
    reportFormat: ReportFormatEnum = ReportFormatEnum.summary


class GoogleAnalyticsCredentialsRequest(BaseModel):
    accessToken: str = Field(..., min_length=1)
    refreshToken: Optional[str] = None
    expiresIn: Optional[int] = Field(None, gt=0)
    expiresAt: Optional[str] = None
    scope: Optional[str] = None
    tokenType: str = "Bearer"
