"""
Organization routing middleware.
"""

from collections.abc import Callable

from django.http import HttpRequest, HttpResponse, HttpResponseRedirect

from apps.core.auth import get_request_context
from apps.core.logging import bind_contextvars, get_logger
from apps.organizations.directory import get_directory
from apps.organizations.resolver import IdentifierSource, resolve_context
from apps.organizations.routing import CallerOrganization, RoutingAction, normalize

logger = get_logger(__name__)


class OrganizationRoutingMiddleware:
    """
    Resolves which organization a request addresses and applies the routing decision.

    Runs after StytchAuthMiddleware so the caller's session organization is
    known. Stores the resolved identifier and decision on ``request.context``
    and copies the X-Org-* headers onto the response (or redirect).
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        context = get_request_context(request)
        directory = get_directory()

        resolved = resolve_context(
            context.host,
            request.path,
            request.GET,
            custom_domain_index=directory.slug_for_custom_domain,
        )
        caller_org = (
            CallerOrganization.from_organization(context.organization)
            if context.organization is not None
            else None
        )
        decision = normalize(
            resolved,
            request.path,
            request.META.get("QUERY_STRING", ""),
            host=context.host,
            scheme=request.scheme,
            is_authenticated=context.is_authenticated,
            caller_org=caller_org,
        )

        context.resolved = resolved
        context.routing = decision

        if resolved.source != IdentifierSource.NONE:
            bind_contextvars(org_slug=resolved.identifier)
            logger.debug(
                "organization_context_resolved",
                source=resolved.source.value,
                action=decision.action.value,
                mismatch=decision.mismatch,
            )

        if decision.action == RoutingAction.REDIRECT:
            response: HttpResponse = HttpResponseRedirect(decision.location)
        else:
            if decision.action == RoutingAction.REWRITE:
                request.path_info = decision.path
                request.path = f"{request.META.get('SCRIPT_NAME', '')}{decision.path}"
            response = self.get_response(request)

        for name, value in decision.headers.items():
            response[name] = value
        return response
