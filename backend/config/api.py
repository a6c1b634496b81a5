"""
Django Ninja API configuration.

Every error leaving the API has the ErrorResponse shape ``{code, detail}``;
the handlers below map domain and framework exceptions onto it.
"""

from django.http import HttpRequest, HttpResponse
from ninja import NinjaAPI
from ninja.errors import AuthenticationError, ValidationError

from apps.accounts.api import membership_router
from apps.accounts.api import router as auth_router
from apps.core.errors import ApiError, ErrorCode
from apps.core.logging import get_logger
from apps.organizations.api import router as organizations_router

logger = get_logger(__name__)

api = NinjaAPI(
    title="ProcessAudit API",
    version="1.0.0",
    description="Multi-tenant organization resolution and membership API.",
    openapi_extra={
        "info": {
            "contact": {"name": "API Support"},
        },
        "tags": [
            {"name": "auth", "description": "Current session and caller context"},
            {"name": "organizations", "description": "Organization resolution and management"},
            {"name": "memberships", "description": "Invitations and membership changes"},
            {"name": "health", "description": "Service health and readiness checks"},
        ],
        "components": {
            "securitySchemes": {
                "bearerAuth": {
                    "type": "http",
                    "scheme": "bearer",
                    "bearerFormat": "JWT",
                    "description": (
                        "Stytch session JWT. Include as: Authorization: Bearer <session_jwt>"
                    ),
                }
            }
        },
    },
)

# Register routers
api.add_router("/auth", auth_router)
api.add_router("/organizations", organizations_router)
api.add_router("/organizations", membership_router)


@api.exception_handler(ApiError)
def handle_api_error(request: HttpRequest, exc: ApiError) -> HttpResponse:
    return api.create_response(request, exc.to_response(), status=exc.status)


@api.exception_handler(AuthenticationError)
def handle_authentication_error(request: HttpRequest, exc: AuthenticationError) -> HttpResponse:
    return api.create_response(
        request,
        {"code": ErrorCode.UNAUTHORIZED.value, "detail": "Authentication required"},
        status=401,
    )


@api.exception_handler(ValidationError)
def handle_validation_error(request: HttpRequest, exc: ValidationError) -> HttpResponse:
    logger.info("api_request_invalid", errors=exc.errors)
    return api.create_response(
        request,
        {"code": ErrorCode.VALIDATION_ERROR.value, "detail": "Invalid request"},
        status=400,
    )


@api.exception_handler(Exception)
def handle_unexpected_error(request: HttpRequest, exc: Exception) -> HttpResponse:
    logger.exception("api_unhandled_error")
    return api.create_response(
        request,
        {"code": ErrorCode.INTERNAL_ERROR.value, "detail": "Internal server error"},
        status=500,
    )


@api.get("/health", tags=["health"], operation_id="healthCheck", summary="Health check")
def health_check(request: HttpRequest) -> dict:
    """Health check endpoint for load balancer."""
    return {"status": "ok"}
