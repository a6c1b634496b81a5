"""
Plan policy - subscription tier to feature limits.

PLAN_LIMITS is the single table of what each plan allows. ``clamp`` narrows
a requested feature configuration to a plan; it never rejects.
"""

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from django.db import models

if TYPE_CHECKING:
    from apps.organizations.models import Organization


class Plan(models.TextChoices):
    FREE = "free", "Free"
    PROFESSIONAL = "professional", "Professional"
    ENTERPRISE = "enterprise", "Enterprise"


@dataclass(frozen=True)
class PlanLimits:
    """
    Ceilings for one plan.

    Numeric ceilings of None mean unlimited.
    """

    integrations: bool
    analytics: bool
    subdomain_routing: bool
    max_projects: int | None
    max_members: int | None
    session_timeout_hours: int


PLAN_LIMITS: dict[Plan, PlanLimits] = {
    Plan.FREE: PlanLimits(
        integrations=False,
        analytics=False,
        subdomain_routing=False,
        max_projects=5,
        max_members=5,
        session_timeout_hours=24,
    ),
    Plan.PROFESSIONAL: PlanLimits(
        integrations=True,
        analytics=True,
        subdomain_routing=True,
        max_projects=50,
        max_members=25,
        session_timeout_hours=72,
    ),
    Plan.ENTERPRISE: PlanLimits(
        integrations=True,
        analytics=True,
        subdomain_routing=True,
        max_projects=None,
        max_members=None,
        session_timeout_hours=168,
    ),
}

# Absolute bounds for a session timeout, independent of plan
MIN_SESSION_TIMEOUT_HOURS = 1
MAX_SESSION_TIMEOUT_HOURS = 168


@dataclass(frozen=True)
class FeatureSettings:
    """
    Feature configuration, either requested or effective.

    In a request, None means "not specified". In an effective configuration
    (the output of clamp), booleans are always set and numeric None means
    unlimited.
    """

    enable_integrations: bool | None = None
    enable_analytics: bool | None = None
    enable_subdomain_routing: bool | None = None
    max_projects: int | None = None
    max_members: int | None = None
    session_timeout_hours: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "FeatureSettings":
        """Build from stored JSON, ignoring unknown keys."""
        data = data or {}
        return cls(**{name: data.get(name) for name in cls.__dataclass_fields__})

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}

    def merged_with(self, other: "FeatureSettings") -> "FeatureSettings":
        """Return a copy where values specified in ``other`` take precedence."""
        changes = {k: v for k, v in other.to_dict().items() if v is not None}
        return replace(self, **changes)


def get_plan(value: str | None) -> Plan:
    """Parse a stored plan value; unknown or missing values fall back to free."""
    try:
        return Plan(value)
    except ValueError:
        return Plan.FREE


def get_plan_limits(plan: Plan | str) -> PlanLimits:
    return PLAN_LIMITS[get_plan(plan)]


def _clamp_number(requested: int | None, ceiling: int | None) -> int | None:
    if ceiling is None:
        return requested
    if requested is None:
        return ceiling
    return min(requested, ceiling)


def _clamp_flag(requested: bool | None, permitted: bool) -> bool:
    if not permitted:
        return False
    return True if requested is None else requested


def clamp(plan: Plan | str, requested: FeatureSettings) -> FeatureSettings:
    """
    Narrow requested features to what the plan allows.

    Numeric values above the plan ceiling are reduced to the ceiling; lower
    requested values are kept; unspecified values take the ceiling. Booleans
    the plan does not permit are forced to False regardless of the request.
    Total and side-effect free.
    """
    limits = get_plan_limits(plan)
    return FeatureSettings(
        enable_integrations=_clamp_flag(requested.enable_integrations, limits.integrations),
        enable_analytics=_clamp_flag(requested.enable_analytics, limits.analytics),
        enable_subdomain_routing=_clamp_flag(
            requested.enable_subdomain_routing, limits.subdomain_routing
        ),
        max_projects=_clamp_number(requested.max_projects, limits.max_projects),
        max_members=_clamp_number(requested.max_members, limits.max_members),
        session_timeout_hours=_clamp_number(
            requested.session_timeout_hours, limits.session_timeout_hours
        ),
    )


def effective_limits(organization: "Organization") -> FeatureSettings:
    """Effective features for an organization: its stored overrides clamped to its plan."""
    return clamp(organization.plan, FeatureSettings.from_dict(organization.feature_overrides))
