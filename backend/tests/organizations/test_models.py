"""
Tests for the Organization model.
"""

from datetime import timedelta

import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.utils import timezone

from apps.organizations.models import Organization
from tests.accounts.factories import OrganizationFactory


@pytest.mark.django_db
class TestOrganizationModel:
    """Tests for Organization model."""

    def test_create_organization_defaults(self) -> None:
        """Should default to the free plan with no custom domain."""
        org = Organization.objects.create(
            stytch_org_id="organization-test-123",
            name="Test Org",
            slug="test-org",
        )

        assert org.plan == "free"
        assert org.custom_domain is None
        assert org.has_custom_domain is False
        assert org.feature_overrides == {}
        assert org.member_count == 0

    def test_str_returns_name(self) -> None:
        org = OrganizationFactory.create(name="Acme Corp")

        assert str(org) == "Acme Corp"

    def test_slug_unique(self) -> None:
        OrganizationFactory.create(slug="unique-slug")

        with pytest.raises(IntegrityError):
            OrganizationFactory.create(slug="unique-slug")

    def test_custom_domain_unique(self) -> None:
        OrganizationFactory.create(custom_domain="audits.acme.com")

        with pytest.raises(IntegrityError):
            OrganizationFactory.create(custom_domain="audits.acme.com")

    def test_several_orgs_without_custom_domain(self) -> None:
        """NULL custom domains do not collide."""
        OrganizationFactory.create(custom_domain=None)
        OrganizationFactory.create(custom_domain=None)

        assert Organization.objects.filter(custom_domain__isnull=True).count() == 2

    def test_slug_format_validated(self) -> None:
        org = OrganizationFactory.build(slug="Not_A_Slug")

        with pytest.raises(ValidationError):
            org.full_clean()

    def test_has_custom_domain(self) -> None:
        org = OrganizationFactory.create(custom_domain="audits.acme.com")

        assert org.has_custom_domain is True

    def test_ordering_by_created_at_desc(self) -> None:
        """Should order organizations by created_at descending."""
        older = OrganizationFactory.create()
        newer = OrganizationFactory.create()
        Organization.objects.filter(pk=older.pk).update(
            created_at=timezone.now() - timedelta(days=1)
        )

        assert list(Organization.objects.all()) == [newer, older]
