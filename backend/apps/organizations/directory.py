"""
Organization directory - cached lookups and provider-backed writes.

All reads of organizations by slug, custom domain or id go through
OrganizationDirectory. Lookups never raise for not-found; they return a
Lookup outcome. Store failures degrade to ``unavailable`` (or a stale entry
inside the grace window) instead of an exception.

Writes go to Stytch first, then the local replica. The cache is never
updated from writes: post_save/post_delete signals drop every key the
organization was reachable under, once immediately and again on commit.
Misses are cached briefly; creating the organization drops them too.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from functools import lru_cache
from typing import Any
from urllib.parse import quote

from django.conf import settings
from django.core.cache import BaseCache, cache
from django.db import DatabaseError, IntegrityError, transaction
from stytch.core.response_base import StytchError

from apps.accounts.stytch_client import get_stytch_client
from apps.core.errors import ApiError, ErrorCode
from apps.core.logging import get_logger
from apps.organizations.models import Organization
from apps.organizations.plans import Plan

logger = get_logger(__name__)

CACHE_KEY_PREFIX = "org-directory"


class LookupKind(StrEnum):
    SLUG = "slug"
    CUSTOM_DOMAIN = "custom_domain"
    ID = "id"


@dataclass(frozen=True)
class Lookup:
    """
    Outcome of a directory lookup.

    Exactly one of: found (organization set), not found (organization None,
    unavailable False), or unavailable (store failed, nothing cached).
    """

    kind: LookupKind
    identifier: str
    organization: Organization | None = None
    unavailable: bool = False
    stale: bool = False

    @property
    def found(self) -> bool:
        return self.organization is not None


def normalize_identifier(value: str | None) -> str:
    return (value or "").strip().lower()


def normalize_domain(value: str | None) -> str:
    """Lower-case a domain and drop scheme-less port and trailing dot."""
    domain = normalize_identifier(value)
    domain = domain.split("/", 1)[0].split(":", 1)[0]
    return domain.rstrip(".")


def domain_variants(domain: str) -> list[str]:
    """The domain with and without a leading ``www.``."""
    if domain.startswith("www."):
        return [domain, domain[len("www.") :]]
    return [domain, f"www.{domain}"]


class DirectoryCache:
    """
    Cache of directory lookups over the Django cache framework.

    Hits are stored with their fetch time and kept for ``ttl + grace``
    seconds: fresh for ``ttl``, then only usable as a stale fallback while
    the store is unavailable. Misses are stored as ``(None, fetched_at)`` for
    ``negative_ttl`` seconds and never served as a stale fallback.
    """

    def __init__(
        self,
        ttl: int,
        grace: int,
        negative_ttl: int = 0,
        backend: BaseCache | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl = ttl
        self.grace = grace
        self.negative_ttl = negative_ttl
        self.backend = backend if backend is not None else cache
        self.clock = clock

    @staticmethod
    def key(kind: LookupKind, identifier: str) -> str:
        return f"{CACHE_KEY_PREFIX}:{kind}:{quote(identifier, safe='')}"

    def get(
        self, kind: LookupKind, identifier: str
    ) -> tuple[Organization | None, float] | None:
        try:
            return self.backend.get(self.key(kind, identifier))
        except DatabaseError:
            # DatabaseCache shares the store that just failed
            logger.warning("organization_directory_cache_unavailable", kind=kind.value)
            return None

    def set(self, kind: LookupKind, identifier: str, organization: Organization) -> None:
        self.backend.set(
            self.key(kind, identifier),
            (organization, self.clock()),
            timeout=self.ttl + self.grace,
        )

    def set_miss(self, kind: LookupKind, identifier: str) -> None:
        if self.negative_ttl > 0:
            self.backend.set(
                self.key(kind, identifier), (None, self.clock()), timeout=self.negative_ttl
            )

    def is_fresh(self, fetched_at: float) -> bool:
        return self.clock() - fetched_at < self.ttl

    def is_within_grace(self, fetched_at: float) -> bool:
        return self.clock() - fetched_at < self.ttl + self.grace

    def is_fresh_miss(self, fetched_at: float) -> bool:
        return self.clock() - fetched_at < self.negative_ttl

    def keys_for(self, organization: Organization) -> list[str]:
        """Every key the organization can be reached under."""
        keys = []
        if organization.stytch_org_id:
            keys.append(self.key(LookupKind.ID, normalize_identifier(organization.stytch_org_id)))
        if organization.slug:
            keys.append(self.key(LookupKind.SLUG, normalize_identifier(organization.slug)))
        if organization.custom_domain:
            for domain in domain_variants(normalize_domain(organization.custom_domain)):
                keys.append(self.key(LookupKind.CUSTOM_DOMAIN, domain))
        return keys

    def delete_keys(self, keys: list[str]) -> None:
        if keys:
            self.backend.delete_many(keys)

    def invalidate(self, organization: Organization) -> None:
        self.delete_keys(self.keys_for(organization))


class OrganizationDirectory:
    """Read-through organization lookups with invalidate-on-write caching."""

    def __init__(self, directory_cache: DirectoryCache) -> None:
        self.cache = directory_cache

    # --- Reads ---

    def resolve_by_slug(self, slug: str | None) -> Lookup:
        return self._lookup(LookupKind.SLUG, normalize_identifier(slug), self._fetch_by_slug)

    def resolve_by_custom_domain(self, domain: str | None) -> Lookup:
        return self._lookup(
            LookupKind.CUSTOM_DOMAIN, normalize_domain(domain), self._fetch_by_custom_domain
        )

    def resolve_by_id(self, org_id: str | None) -> Lookup:
        return self._lookup(LookupKind.ID, normalize_identifier(org_id), self._fetch_by_id)

    def slug_for_custom_domain(self, host: str) -> str | None:
        """Custom-domain index for the context resolver."""
        lookup = self.resolve_by_custom_domain(host)
        return lookup.organization.slug if lookup.found else None

    def _lookup(
        self,
        kind: LookupKind,
        identifier: str,
        fetch: Callable[[str], Organization | None],
    ) -> Lookup:
        if not identifier:
            return Lookup(kind, identifier)

        entry = self.cache.get(kind, identifier)
        if entry is not None:
            cached, fetched_at = entry
            if cached is None:
                if self.cache.is_fresh_miss(fetched_at):
                    return Lookup(kind, identifier)
                entry = None
            elif self.cache.is_fresh(fetched_at):
                return Lookup(kind, identifier, organization=cached)

        try:
            organization = fetch(identifier)
        except DatabaseError:
            if entry is not None and self.cache.is_within_grace(entry[1]):
                logger.warning(
                    "organization_directory_serving_stale",
                    kind=kind.value,
                    identifier=identifier,
                )
                return Lookup(kind, identifier, organization=entry[0], stale=True)
            logger.exception(
                "organization_directory_unavailable",
                kind=kind.value,
                identifier=identifier,
            )
            return Lookup(kind, identifier, unavailable=True)

        if organization is not None:
            self.cache.set(kind, identifier, organization)
        else:
            self.cache.set_miss(kind, identifier)
        return Lookup(kind, identifier, organization=organization)

    @staticmethod
    def _fetch_by_slug(slug: str) -> Organization | None:
        return Organization.objects.filter(slug=slug).first()

    @staticmethod
    def _fetch_by_id(org_id: str) -> Organization | None:
        return Organization.objects.filter(stytch_org_id__iexact=org_id).first()

    @staticmethod
    def _fetch_by_custom_domain(domain: str) -> Organization | None:
        candidates = list(
            Organization.objects.filter(custom_domain__in=domain_variants(domain)).order_by(
                "-updated_at"
            )
        )
        if len(candidates) > 1:
            logger.warning(
                "organization_directory_ambiguous_custom_domain",
                domain=domain,
                candidates=[org.slug for org in candidates],
                chosen=candidates[0].slug,
            )
        return candidates[0] if candidates else None

    # --- Writes (provider first, then replica) ---

    def create_organization(
        self,
        *,
        name: str,
        slug: str,
        plan: Plan = Plan.FREE,
        custom_domain: str | None = None,
    ) -> tuple[Organization, Any]:
        """
        Create the organization in Stytch, then in the local replica.

        Returns the local Organization and the Stytch organization object.
        """
        custom_domain = normalize_domain(custom_domain) or None
        self._ensure_custom_domain_available(custom_domain)

        try:
            response = get_stytch_client().organizations.create(
                organization_name=name,
                organization_slug=slug,
            )
        except StytchError as e:
            raise _translate_provider_error(e, "create") from e

        stytch_org = response.organization
        try:
            with transaction.atomic():
                organization = Organization.objects.create(
                    stytch_org_id=stytch_org.organization_id,
                    name=name,
                    slug=slug,
                    plan=plan,
                    custom_domain=custom_domain,
                )
        except IntegrityError as e:
            raise ApiError(
                ErrorCode.ORGANIZATION_EXISTS, "Organization slug or domain already in use"
            ) from e

        logger.info("organization_created", org_id=organization.stytch_org_id, org_slug=slug)
        return organization, stytch_org

    def update_organization(self, organization: Organization, **changes: Any) -> Organization:
        """
        Apply name/slug changes in Stytch, then all changes locally.

        Accepted keys: name, slug, plan, custom_domain, feature_overrides.
        """
        provider_changes = {}
        if "name" in changes and changes["name"] != organization.name:
            provider_changes["organization_name"] = changes["name"]
        if "slug" in changes and changes["slug"] != organization.slug:
            provider_changes["organization_slug"] = changes["slug"]
        if "custom_domain" in changes:
            changes["custom_domain"] = normalize_domain(changes["custom_domain"]) or None
            self._ensure_custom_domain_available(changes["custom_domain"], organization)

        if provider_changes:
            try:
                get_stytch_client().organizations.update(
                    organization_id=organization.stytch_org_id,
                    **provider_changes,
                )
            except StytchError as e:
                raise _translate_provider_error(e, "update") from e

        for field_name, value in changes.items():
            setattr(organization, field_name, value)
        try:
            with transaction.atomic():
                organization.save()
        except IntegrityError as e:
            raise ApiError(
                ErrorCode.ORGANIZATION_EXISTS, "Organization slug or domain already in use"
            ) from e

        logger.info(
            "organization_updated",
            org_id=organization.stytch_org_id,
            fields=sorted(changes),
        )
        return organization

    @staticmethod
    def _ensure_custom_domain_available(
        domain: str | None, organization: Organization | None = None
    ) -> None:
        """Reject a domain another organization holds under either ``www.`` variant."""
        if not domain:
            return
        holders = Organization.objects.filter(custom_domain__in=domain_variants(domain))
        if organization is not None:
            holders = holders.exclude(pk=organization.pk)
        if holders.exists():
            logger.warning("organization_custom_domain_conflict", domain=domain)
            raise ApiError(
                ErrorCode.ORGANIZATION_EXISTS,
                "Custom domain is already in use by another organization",
            )

    def delete_organization(self, organization: Organization) -> None:
        try:
            get_stytch_client().organizations.delete(organization_id=organization.stytch_org_id)
        except StytchError as e:
            raise _translate_provider_error(e, "delete") from e

        org_id = organization.stytch_org_id
        organization.delete()
        logger.info("organization_deleted", org_id=org_id)


def _translate_provider_error(error: StytchError, operation: str) -> ApiError:
    message = (error.details.error_message or "").lower()
    if "slug" in message or "duplicate" in message:
        logger.warning(
            "organization_slug_conflict",
            operation=operation,
            error_type=error.details.error_type,
        )
        return ApiError(
            ErrorCode.ORGANIZATION_EXISTS,
            "Organization slug already in use. Try a different one.",
        )
    logger.error(
        "organization_provider_error",
        operation=operation,
        error_type=error.details.error_type,
    )
    return ApiError(ErrorCode.INTERNAL_ERROR, f"Failed to {operation} organization")


@lru_cache(maxsize=1)
def get_directory() -> OrganizationDirectory:
    """Process-wide directory configured from Django settings."""
    return OrganizationDirectory(
        DirectoryCache(
            ttl=settings.ORG_DIRECTORY_CACHE_TTL,
            grace=settings.ORG_DIRECTORY_STALE_GRACE,
            negative_ttl=settings.ORG_DIRECTORY_NEGATIVE_TTL,
        )
    )


# --- API helpers ---


def ensure_available(lookup: Lookup) -> None:
    """Raise 503 INTERNAL_ERROR when the store could not answer."""
    if lookup.unavailable:
        raise ApiError(
            ErrorCode.INTERNAL_ERROR,
            "Organization directory is temporarily unavailable",
            status=503,
        )


def require_organization(org_id: str) -> Organization:
    """Look up an organization by id or raise ORG_NOT_FOUND."""
    lookup = get_directory().resolve_by_id(org_id)
    ensure_available(lookup)
    if not lookup.found:
        raise ApiError(
            ErrorCode.ORG_NOT_FOUND, "Organization not found", identifier={"id": org_id}
        )
    return lookup.organization


# --- Invalidation ---


def _invalidate(organization: Organization) -> None:
    directory_cache = get_directory().cache
    keys = directory_cache.keys_for(organization)
    directory_cache.delete_keys(keys)
    # Readers may re-cache the pre-commit row until the writer commits
    transaction.on_commit(lambda: directory_cache.delete_keys(keys))


def invalidate_before_save(sender, instance: Organization, **kwargs) -> None:
    """Drop keys for the values being replaced (old slug, old domain)."""
    if instance.pk is None:
        return
    previous = Organization.objects.filter(pk=instance.pk).first()
    if previous is not None:
        _invalidate(previous)


def invalidate_after_write(sender, instance: Organization, **kwargs) -> None:
    _invalidate(instance)
