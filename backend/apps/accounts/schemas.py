"""
Accounts API schemas - Pydantic models for request/response.
"""

from datetime import datetime

from pydantic import BaseModel, Field

# --- Request Schemas ---


class CreateInvitationRequest(BaseModel):
    """Request to invite an email address into an organization."""

    email_address: str = Field(
        ...,
        description="Invitee's email address (validated server-side)",
        examples=["new.hire@company.com"],
    )
    role: str = Field(default="member", description="admin, member or guest", examples=["member"])
    message: str = Field(default="", max_length=1000, description="Optional note for the invitee")


class ChangeRoleRequest(BaseModel):
    role: str = Field(..., description="New role: admin, member or guest", examples=["admin"])


# --- Response Schemas ---


class InvitationResponse(BaseModel):
    """An invitation, or the no-op outcome for an existing member."""

    id: int | None = Field(default=None, description="Invitation ID (None for existing members)")
    email_address: str
    role: str
    status: str = Field(..., description="pending, accepted, revoked, expired or already_member")
    message: str = ""
    created: bool = Field(..., description="False when nothing new was created")
    created_at: datetime | None = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": 42,
                "email_address": "new.hire@company.com",
                "role": "member",
                "status": "pending",
                "message": "Welcome aboard!",
                "created": True,
                "created_at": "2026-01-05T10:00:00Z",
            }
        }
    }


class MembershipResponse(BaseModel):
    """A membership in an organization."""

    user_id: int = Field(..., description="Local user ID (the membership identifier in URLs)")
    email: str
    name: str
    role: str
    permissions: list[str] = Field(..., description="Role capabilities plus overrides")
    joined_at: datetime


class UserInfo(BaseModel):
    """Current user info response."""

    id: int = Field(..., description="Local database user ID")
    email: str = Field(..., description="User's email address")
    name: str = Field(..., description="User's display name")


class MemberInfo(BaseModel):
    """Member info for /auth/me response."""

    id: int = Field(..., description="Local database member ID")
    stytch_member_id: str = Field(..., description="Stytch member ID")
    role: str = Field(..., description="Role within the session organization")
    is_admin: bool = Field(..., description="Whether the member has admin privileges")
    permissions: list[str] = Field(..., description="Role capabilities plus overrides")


class OrganizationInfo(BaseModel):
    """Organization info for /auth/me response."""

    id: str = Field(..., description="Stytch organization ID")
    name: str = Field(..., description="Organization display name")
    slug: str = Field(..., description="URL-safe organization identifier")
    plan: str


class ResolvedContextInfo(BaseModel):
    """Organization implied by the request's host or path."""

    source: str = Field(..., description="subdomain, customDomain, path, explicit or none")
    identifier: str | None = None
    mismatch: bool = Field(
        ..., description="True when the session organization differs from the resolved one"
    )


class MeResponse(BaseModel):
    """Response for /auth/me endpoint with current session context."""

    user: UserInfo = Field(..., description="Cross-org user identity")
    member: MemberInfo = Field(..., description="Org-scoped membership details")
    organization: OrganizationInfo = Field(..., description="Session organization")
    resolved: ResolvedContextInfo = Field(..., description="Organization the request addresses")

    model_config = {
        "json_schema_extra": {
            "example": {
                "user": {"id": 1, "email": "user@company.com", "name": "Jane Doe"},
                "member": {
                    "id": 1,
                    "stytch_member_id": "member-live-abc123",
                    "role": "admin",
                    "is_admin": True,
                    "permissions": ["manage_members", "view_reports"],
                },
                "organization": {
                    "id": "organization-live-abc123",
                    "name": "Acme Corp",
                    "slug": "acme-corp",
                    "plan": "professional",
                },
                "resolved": {"source": "subdomain", "identifier": "acme-corp", "mismatch": False},
            }
        }
    }
