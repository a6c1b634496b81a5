"""
Organizations API schemas - Pydantic models for request/response.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from apps.organizations.plans import (
    MAX_SESSION_TIMEOUT_HOURS,
    MIN_SESSION_TIMEOUT_HOURS,
    FeatureSettings,
    Plan,
    effective_limits,
)

# --- Shared ---


class FeatureSettingsSchema(BaseModel):
    """Feature configuration. In responses these are the plan-clamped values."""

    enable_integrations: bool | None = None
    enable_analytics: bool | None = None
    enable_subdomain_routing: bool | None = None
    max_projects: int | None = Field(default=None, ge=0, description="None means unlimited")
    max_members: int | None = Field(default=None, ge=1, description="None means unlimited")
    session_timeout_hours: int | None = Field(
        default=None,
        ge=MIN_SESSION_TIMEOUT_HOURS,
        le=MAX_SESSION_TIMEOUT_HOURS,
    )

    @classmethod
    def from_settings(cls, features: FeatureSettings) -> "FeatureSettingsSchema":
        return cls(**features.to_dict())

    def to_settings(self) -> FeatureSettings:
        return FeatureSettings(**self.model_dump())


# --- Request Schemas ---


class CreateOrganizationRequest(BaseModel):
    """Request to create an organization. The caller becomes its first admin."""

    name: str = Field(
        ..., description="Display name, at least 2 characters", examples=["Acme Corp"]
    )
    slug: str = Field(
        ...,
        description="URL-safe identifier (lowercase letters, numbers, hyphens)",
        examples=["acme-corp"],
    )
    plan: str = Field(default=Plan.FREE.value, examples=["professional"])
    custom_domain: str | None = Field(default=None, examples=["audits.acme.com"])


class UpdateOrganizationRequest(BaseModel):
    """Partial update. Omitted fields are left unchanged."""

    name: str | None = None
    slug: str | None = None
    plan: str | None = None
    custom_domain: str | None = None


class DeleteOrganizationRequest(BaseModel):
    confirm: bool = Field(default=False, description="Must be true to delete")


class UpdateSettingsRequest(BaseModel):
    """Requested features. Values beyond the plan are narrowed, never rejected."""

    features: FeatureSettingsSchema


# --- Response Schemas ---


class OrganizationResponse(BaseModel):
    """Organization as seen by its members."""

    id: str = Field(..., description="Stable organization id (Stytch organization_id)")
    slug: str
    name: str
    custom_domain: str | None = None
    plan: str
    member_count: int
    features: FeatureSettingsSchema = Field(..., description="Effective (plan-clamped) features")
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_organization(cls, organization) -> "OrganizationResponse":
        return cls(
            id=organization.stytch_org_id,
            slug=organization.slug,
            name=organization.name,
            custom_domain=organization.custom_domain,
            plan=organization.plan,
            member_count=organization.member_count,
            features=FeatureSettingsSchema.from_settings(effective_limits(organization)),
            created_at=organization.created_at,
            updated_at=organization.updated_at,
        )


class OrganizationListResponse(BaseModel):
    organizations: list[OrganizationResponse]


class ResolutionContext(BaseModel):
    resolved_by: str = Field(..., description="id, slug, domain or subdomain")
    identifier: str
    has_custom_domain: bool
    custom_domain: str | None = None


class ResolvedOrganizationResponse(BaseModel):
    """Public organization data returned by the resolve endpoint."""

    id: str
    slug: str
    name: str
    created_at: datetime
    context: ResolutionContext
