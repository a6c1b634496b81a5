"""
Organizations models - multi-tenancy foundation.
"""

from django.core.validators import RegexValidator
from django.db import models

from apps.organizations.plans import Plan

SLUG_PATTERN = r"^[a-z0-9][a-z0-9-]*$"


class Organization(models.Model):
    """
    Local replica of a Stytch Organization.

    Stytch is the source of truth for org/member data. This model syncs via
    webhooks and holds app-specific extensions (plan, custom domain, feature
    overrides). Reads go through OrganizationDirectory, which caches them;
    saving or deleting a row invalidates the cached lookups.
    """

    # Stytch sync - exposed as the opaque organization id
    stytch_org_id = models.CharField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="Stytch organization_id, e.g. 'organization-xxx'",
    )

    # Organization info
    name = models.CharField(max_length=255)
    slug = models.CharField(
        max_length=63,
        unique=True,
        validators=[RegexValidator(SLUG_PATTERN)],
        help_text="URL-safe identifier and platform subdomain, e.g. 'acme-corp'",
    )
    custom_domain = models.CharField(
        max_length=253,
        unique=True,
        null=True,
        blank=True,
        help_text="Bring-your-own hostname, stored normalized, e.g. 'audits.acme.com'",
    )

    # Subscription
    plan = models.CharField(max_length=20, choices=Plan.choices, default=Plan.FREE)
    feature_overrides = models.JSONField(
        default=dict,
        blank=True,
        help_text="Requested feature values; narrowed to the plan on read",
    )

    # Denormalized, maintained by membership services and webhooks
    member_count = models.PositiveIntegerField(default=0)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.name

    @property
    def has_custom_domain(self) -> bool:
        return bool(self.custom_domain)
