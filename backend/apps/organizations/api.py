"""
Organizations API endpoints.

Resolution by identifier (public), and organization CRUD and settings for
members. All organization reads go through OrganizationDirectory; all
permission checks go through the Membership Authority.
"""

from django.http import HttpRequest, HttpResponse
from ninja import Router

from apps.accounts.authority import Action, authorize
from apps.accounts.models import Member
from apps.accounts.services import create_organization_for, get_membership
from apps.core.auth import RequestContext
from apps.core.errors import ApiError, ErrorCode
from apps.core.logging import get_logger
from apps.core.schemas import ErrorResponse, MessageResponse
from apps.core.security import SessionBearerAuth
from apps.organizations.directory import (
    ensure_available,
    get_directory,
    require_organization,
)
from apps.organizations.models import Organization
from apps.organizations.plans import FeatureSettings, clamp, get_plan
from apps.organizations.schemas import (
    CreateOrganizationRequest,
    DeleteOrganizationRequest,
    FeatureSettingsSchema,
    OrganizationListResponse,
    OrganizationResponse,
    ResolutionContext,
    ResolvedOrganizationResponse,
    UpdateOrganizationRequest,
    UpdateSettingsRequest,
)
from apps.organizations.validators import (
    clean_custom_domain,
    clean_name,
    clean_plan,
    clean_slug,
)

logger = get_logger(__name__)

router = Router(tags=["organizations"])
bearer_auth = SessionBearerAuth()

RESOLVE_CACHE_CONTROL = "public, max-age=300, s-maxage=300"


def _caller_membership(request: HttpRequest, organization: Organization) -> Member | None:
    context: RequestContext = request.auth  # type: ignore[attr-defined]
    return get_membership(context.user, organization)


def _ensure_slug_available(slug: str, organization: Organization | None = None) -> None:
    taken = Organization.objects.filter(slug=slug)
    if organization is not None:
        taken = taken.exclude(pk=organization.pk)
    if taken.exists():
        raise ApiError(
            ErrorCode.ORGANIZATION_EXISTS, "Organization slug already in use. Try a different one."
        )


@router.get(
    "/resolve",
    response={200: ResolvedOrganizationResponse, 400: ErrorResponse, 404: ErrorResponse},
    operation_id="resolveOrganization",
    summary="Resolve an organization by id, slug, domain or subdomain",
)
def resolve_organization(
    request: HttpRequest,
    response: HttpResponse,
    id: str | None = None,  # noqa: A002
    slug: str | None = None,
    domain: str | None = None,
    subdomain: str | None = None,
) -> ResolvedOrganizationResponse:
    """
    Public lookup used by frontends and edge workers.

    Precedence when several identifiers are given: id > slug > domain > subdomain.
    Returns public fields only.
    """
    directory = get_directory()
    candidates = [
        ("id", id, directory.resolve_by_id),
        ("slug", slug, directory.resolve_by_slug),
        ("domain", domain, directory.resolve_by_custom_domain),
        ("subdomain", subdomain, directory.resolve_by_slug),
    ]
    given = [(kind, value, resolve) for kind, value, resolve in candidates if value]
    if not given:
        raise ApiError(
            ErrorCode.MISSING_IDENTIFIER,
            "Provide one of: id, slug, domain, subdomain",
        )

    resolved_by, identifier, resolve = given[0]
    lookup = resolve(identifier)
    ensure_available(lookup)
    if not lookup.found:
        logger.info("organization_resolve_not_found", resolved_by=resolved_by)
        raise ApiError(
            ErrorCode.ORG_NOT_FOUND,
            "Organization not found",
            identifier={"domain": domain, "subdomain": subdomain, "slug": slug, "id": id},
        )

    org = lookup.organization
    response["Cache-Control"] = RESOLVE_CACHE_CONTROL
    return ResolvedOrganizationResponse(
        id=org.stytch_org_id,
        slug=org.slug,
        name=org.name,
        created_at=org.created_at,
        context=ResolutionContext(
            resolved_by=resolved_by,
            identifier=identifier,
            has_custom_domain=org.has_custom_domain,
            custom_domain=org.custom_domain,
        ),
    )


@router.get(
    "",
    response={200: OrganizationListResponse, 401: ErrorResponse},
    auth=bearer_auth,
    operation_id="listOrganizations",
    summary="List the caller's organizations",
)
def list_organizations(request: HttpRequest) -> OrganizationListResponse:
    context: RequestContext = request.auth  # type: ignore[attr-defined]
    memberships = Member.objects.filter(user=context.user).select_related("organization")
    return OrganizationListResponse(
        organizations=[OrganizationResponse.from_organization(m.organization) for m in memberships]
    )


@router.post(
    "",
    response={
        201: OrganizationResponse,
        400: ErrorResponse,
        401: ErrorResponse,
        409: ErrorResponse,
    },
    auth=bearer_auth,
    operation_id="createOrganization",
    summary="Create an organization",
)
def create_organization(
    request: HttpRequest, payload: CreateOrganizationRequest
) -> tuple[int, OrganizationResponse]:
    """Create an organization in Stytch and locally, with the caller as admin."""
    context: RequestContext = request.auth  # type: ignore[attr-defined]

    name = clean_name(payload.name)
    slug = clean_slug(payload.slug)
    plan = clean_plan(payload.plan)
    custom_domain = clean_custom_domain(payload.custom_domain)
    _ensure_slug_available(slug)

    organization, _ = create_organization_for(
        context.user,
        name=name,
        slug=slug,
        plan=plan,
        custom_domain=custom_domain,
    )
    return 201, OrganizationResponse.from_organization(organization)


@router.get(
    "/{org_id}",
    response={
        200: OrganizationResponse,
        401: ErrorResponse,
        403: ErrorResponse,
        404: ErrorResponse,
    },
    auth=bearer_auth,
    operation_id="getOrganization",
    summary="Get organization details",
)
def get_organization(request: HttpRequest, org_id: str) -> OrganizationResponse:
    organization = require_organization(org_id)
    caller = _caller_membership(request, organization)
    authorize(caller, organization, Action.VIEW_ORGANIZATION).raise_for_denial()
    return OrganizationResponse.from_organization(organization)


@router.patch(
    "/{org_id}",
    response={
        200: OrganizationResponse,
        400: ErrorResponse,
        401: ErrorResponse,
        403: ErrorResponse,
        404: ErrorResponse,
        409: ErrorResponse,
    },
    auth=bearer_auth,
    operation_id="updateOrganization",
    summary="Update organization",
)
def update_organization(
    request: HttpRequest, org_id: str, payload: UpdateOrganizationRequest
) -> OrganizationResponse:
    """Admin only. Name and slug are synced to Stytch."""
    organization = require_organization(org_id)
    caller = _caller_membership(request, organization)
    authorize(caller, organization, Action.UPDATE_ORGANIZATION).raise_for_denial()

    changes = {}
    if payload.name is not None:
        changes["name"] = clean_name(payload.name)
    if payload.slug is not None:
        changes["slug"] = clean_slug(payload.slug)
        _ensure_slug_available(changes["slug"], organization)
    if payload.plan is not None:
        changes["plan"] = clean_plan(payload.plan)
    if payload.custom_domain is not None:
        changes["custom_domain"] = clean_custom_domain(payload.custom_domain)

    if changes:
        organization = get_directory().update_organization(organization, **changes)
    return OrganizationResponse.from_organization(organization)


@router.delete(
    "/{org_id}",
    response={200: MessageResponse, 400: ErrorResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=bearer_auth,
    operation_id="deleteOrganization",
    summary="Delete organization",
)
def delete_organization(
    request: HttpRequest, org_id: str, payload: DeleteOrganizationRequest | None = None
) -> MessageResponse:
    """Admin only, and requires ``{"confirm": true}``. A missing body is unconfirmed."""
    organization = require_organization(org_id)
    caller = _caller_membership(request, organization)
    authorize(
        caller,
        organization,
        Action.DELETE_ORGANIZATION,
        confirmed=bool(payload and payload.confirm),
    ).raise_for_denial()

    get_directory().delete_organization(organization)
    return MessageResponse(message="Organization deleted")


@router.patch(
    "/{org_id}/settings",
    response={
        200: FeatureSettingsSchema,
        400: ErrorResponse,
        401: ErrorResponse,
        403: ErrorResponse,
    },
    auth=bearer_auth,
    operation_id="updateOrganizationSettings",
    summary="Update organization feature settings",
)
def update_settings(
    request: HttpRequest, org_id: str, payload: UpdateSettingsRequest
) -> FeatureSettingsSchema:
    """
    Admin only. Stores the requested features and returns the effective ones.

    Requests beyond the plan are narrowed to the plan's ceilings, not rejected.
    """
    organization = require_organization(org_id)
    caller = _caller_membership(request, organization)
    authorize(caller, organization, Action.UPDATE_SETTINGS).raise_for_denial()

    stored = organization.feature_overrides or {}
    requested = payload.features.to_settings()
    merged = FeatureSettings.from_dict(stored).merged_with(requested)

    organization = get_directory().update_organization(
        organization, feature_overrides=merged.to_dict()
    )
    effective = clamp(get_plan(organization.plan), merged)
    logger.info("organization_settings_updated", org_id=organization.stytch_org_id)
    return FeatureSettingsSchema.from_settings(effective)
