"""
Stytch webhook handler.

Handles incoming webhooks from Stytch for member and organization events.
Stytch uses Svix for webhook delivery and signature verification.

Keeps the local replica (and through its save signals, the organization
directory cache) in step with Stytch, and accepts pending invitations when
an invited member becomes active.
"""

import json

from django.conf import settings
from django.db import transaction
from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST
from svix.webhooks import Webhook, WebhookVerificationError

from apps.accounts.constants import MemberStatus
from apps.accounts.models import Invitation, Member
from apps.accounts.roles import parse_role, role_from_stytch, role_ids_from_payload
from apps.accounts.services import (
    get_or_create_member_from_stytch,
    get_or_create_user_from_stytch,
    refresh_member_count,
)
from apps.core.logging import get_logger
from apps.core.webhooks import mark_webhook_processed
from apps.organizations.models import Organization

logger = get_logger(__name__)


def _find_pending_invitation(member_data: dict, organization: Organization) -> Invitation | None:
    pending = Invitation.objects.filter(
        organization=organization, status=Invitation.Status.PENDING
    )
    stytch_member_id = member_data.get("member_id")
    invitation = pending.filter(stytch_member_id=stytch_member_id).first()
    if invitation is None and member_data.get("email_address"):
        invitation = pending.filter(email_address__iexact=member_data["email_address"]).first()
    return invitation


def accept_invitation(member_data: dict, organization: Organization) -> Member:
    """
    Create the membership for an invited member who became active.

    The matching pending invitation (if any) is marked accepted and decides
    the role; otherwise the role comes from Stytch RBAC.
    """
    invitation = _find_pending_invitation(member_data, organization)
    role = role_from_stytch(role_ids_from_payload(member_data.get("roles", [])))
    if invitation is not None:
        role = parse_role(invitation.role) or role

    user = get_or_create_user_from_stytch(
        email=member_data["email_address"],
        name=member_data.get("name", "") or "",
    )
    member = get_or_create_member_from_stytch(
        user=user,
        organization=organization,
        stytch_member_id=member_data["member_id"],
        role=role,
    )

    if invitation is not None:
        invitation.status = Invitation.Status.ACCEPTED
        invitation.stytch_member_id = member.stytch_member_id
        invitation.save(update_fields=["status", "stytch_member_id", "updated_at"])
        logger.info(
            "stytch_webhook_invitation_accepted",
            invitation_id=invitation.id,
            stytch_member_id=member.stytch_member_id,
        )
    return member


def handle_member_created(data: dict) -> None:
    """
    Handle member.create event from Stytch.

    Active members are created locally if missing (covers a failed local
    write after Stytch succeeded). Invited members only get their Stytch id
    linked to the pending invitation.
    """
    member_data = data.get("member", {})
    stytch_member_id = member_data.get("member_id")
    stytch_org_id = member_data.get("organization_id")
    email = member_data.get("email_address")

    if not all([stytch_member_id, stytch_org_id, email]):
        logger.warning(
            "stytch_webhook_member_create_missing_fields",
            stytch_member_id=stytch_member_id,
            stytch_org_id=stytch_org_id,
        )
        return

    if Member.objects.filter(stytch_member_id=stytch_member_id).exists():
        logger.debug("stytch_webhook_member_exists", stytch_member_id=stytch_member_id)
        return

    try:
        org = Organization.objects.get(stytch_org_id=stytch_org_id)
    except Organization.DoesNotExist:
        logger.warning(
            "stytch_webhook_org_not_found_for_member",
            stytch_org_id=stytch_org_id,
            stytch_member_id=stytch_member_id,
        )
        return

    if member_data.get("status") == MemberStatus.INVITED:
        invitation = _find_pending_invitation(member_data, org)
        if invitation is not None and not invitation.stytch_member_id:
            invitation.stytch_member_id = stytch_member_id
            invitation.save(update_fields=["stytch_member_id", "updated_at"])
        return

    logger.info("stytch_webhook_member_creating", stytch_member_id=stytch_member_id)
    accept_invitation(member_data, org)


def handle_member_updated(data: dict) -> None:
    """
    Handle member.update event from Stytch.

    Syncs role changes, accepts invitations for newly active members and
    removes members Stytch reports as deleted.
    """
    member_data = data.get("member", {})
    stytch_member_id = member_data.get("member_id")

    if not stytch_member_id:
        logger.warning("stytch_webhook_member_update_missing_id")
        return

    status = member_data.get("status")
    member = (
        Member.objects.select_related("organization")
        .filter(stytch_member_id=stytch_member_id)
        .first()
    )

    if member is None:
        if status != MemberStatus.ACTIVE or not member_data.get("email_address"):
            logger.info("stytch_webhook_member_not_found", stytch_member_id=stytch_member_id)
            return
        org = Organization.objects.filter(stytch_org_id=member_data.get("organization_id")).first()
        if org is None:
            logger.warning(
                "stytch_webhook_org_not_found_for_member", stytch_member_id=stytch_member_id
            )
            return
        accept_invitation(member_data, org)
        return

    if status == MemberStatus.DELETED:
        _delete_member(member)
        return

    new_role = role_from_stytch(role_ids_from_payload(member_data.get("roles", [])))
    if member.role != new_role:
        logger.info(
            "stytch_webhook_member_role_updated",
            stytch_member_id=stytch_member_id,
            old_role=member.role,
            new_role=new_role.value,
        )
        member.role = new_role
        member.save(update_fields=["role", "updated_at"])


def _delete_member(member: Member) -> None:
    organization = member.organization
    logger.info("stytch_webhook_member_deleted", stytch_member_id=member.stytch_member_id)
    member.delete()
    refresh_member_count(organization)


def handle_member_deleted(data: dict) -> None:
    """Handle member.delete event from Stytch."""
    member_id = data.get("id") or data.get("member", {}).get("member_id")

    if not member_id:
        logger.warning("stytch_webhook_member_delete_missing_id")
        return

    member = (
        Member.objects.select_related("organization").filter(stytch_member_id=member_id).first()
    )
    if member is None:
        logger.debug("stytch_webhook_member_already_deleted", stytch_member_id=member_id)
        return

    _delete_member(member)


def handle_organization_updated(data: dict) -> None:
    """
    Handle organization.update event from Stytch.

    Syncs organization name and slug changes. Saving drops the old slug from
    the directory cache.
    """
    org_data = data.get("organization", {})
    stytch_org_id = org_data.get("organization_id")

    if not stytch_org_id:
        logger.warning("stytch_webhook_org_update_missing_id")
        return

    try:
        org = Organization.objects.get(stytch_org_id=stytch_org_id)
    except Organization.DoesNotExist:
        logger.info("stytch_webhook_org_not_found", stytch_org_id=stytch_org_id)
        return

    updated_fields = []

    new_name = org_data.get("organization_name")
    if new_name and org.name != new_name:
        org.name = new_name
        updated_fields.append("name")

    new_slug = org_data.get("organization_slug")
    if new_slug and org.slug != new_slug:
        logger.info(
            "stytch_webhook_org_slug_updated",
            stytch_org_id=stytch_org_id,
            old_slug=org.slug,
            new_slug=new_slug,
        )
        org.slug = new_slug
        updated_fields.append("slug")

    if updated_fields:
        org.save(update_fields=[*updated_fields, "updated_at"])


def handle_organization_deleted(data: dict) -> None:
    """
    Handle organization.delete event from Stytch.

    Deletes the organization and, by cascade, its members and invitations.
    """
    stytch_org_id = data.get("id") or data.get("organization", {}).get("organization_id")

    if not stytch_org_id:
        logger.warning("stytch_webhook_org_delete_missing_id")
        return

    org = Organization.objects.filter(stytch_org_id=stytch_org_id).first()
    if org is None:
        logger.debug("stytch_webhook_org_already_deleted", stytch_org_id=stytch_org_id)
        return

    logger.info("stytch_webhook_org_deleting", stytch_org_id=stytch_org_id, org_slug=org.slug)
    org.delete()


MEMBER_HANDLERS = {
    "CREATE": handle_member_created,
    "UPDATE": handle_member_updated,
    "DELETE": handle_member_deleted,
}

ORGANIZATION_HANDLERS = {
    "UPDATE": handle_organization_updated,
    "DELETE": handle_organization_deleted,
}


@csrf_exempt
@require_POST
def stytch_webhook(request: HttpRequest) -> HttpResponse:
    """
    Handle Stytch webhook events.

    Verifies Svix signature and dispatches to the appropriate handler.

    Stytch event types follow the pattern: source.object_type.action
    - source: 'direct', 'dashboard', 'scim'
    - object_type: 'member', 'organization', etc.
    - action: 'CREATE', 'UPDATE', 'DELETE'
    """
    payload = request.body

    if not settings.STYTCH_WEBHOOK_SECRET:
        logger.error("stytch_webhook_secret_not_configured")
        return HttpResponse(status=500)

    try:
        wh = Webhook(settings.STYTCH_WEBHOOK_SECRET)
        event = wh.verify(payload, dict(request.headers))
    except WebhookVerificationError as e:
        logger.warning("stytch_webhook_invalid_signature", error=str(e))
        return HttpResponse(status=400)
    except json.JSONDecodeError as e:
        logger.warning("stytch_webhook_invalid_json", error=str(e))
        return HttpResponse(status=400)

    # Svix message ID for idempotency
    event_id = request.headers.get("svix-id", "")
    if not event_id:
        logger.warning("stytch_webhook_missing_svix_id")
        return HttpResponse(status=400)

    action = event.get("action", "")
    object_type = event.get("object_type", "")

    logger.info(
        "stytch_webhook_received",
        event_id=event_id,
        event_type=event.get("event_type", ""),
        action=action,
        object_type=object_type,
    )

    handlers = {"member": MEMBER_HANDLERS, "organization": ORGANIZATION_HANDLERS}.get(
        object_type, {}
    )
    handler = handlers.get(action)

    # Idempotency marker is rolled back with the handler's writes on failure
    try:
        with transaction.atomic():
            if not mark_webhook_processed("stytch", event_id):
                logger.info("stytch_webhook_duplicate", event_id=event_id)
                return HttpResponse(status=200)

            if handler is None:
                logger.debug(
                    "stytch_webhook_unhandled_event", object_type=object_type, action=action
                )
            else:
                handler(event)

    except Exception:
        logger.exception("stytch_webhook_handler_error")
        # 500 so Svix retries with exponential backoff
        return HttpResponse(status=500)

    return HttpResponse(status=200)
