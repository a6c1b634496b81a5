"""
Organizations app configuration.
"""

from django.apps import AppConfig
from django.db.models.signals import post_delete, post_save, pre_save


class OrganizationsConfig(AppConfig):
    """Configuration for organizations app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.organizations"
    verbose_name = "Organizations"

    def ready(self) -> None:
        from apps.organizations.directory import invalidate_after_write, invalidate_before_save
        from apps.organizations.models import Organization

        pre_save.connect(
            invalidate_before_save, sender=Organization, dispatch_uid="org_directory_pre_save"
        )
        post_save.connect(
            invalidate_after_write, sender=Organization, dispatch_uid="org_directory_post_save"
        )
        post_delete.connect(
            invalidate_after_write, sender=Organization, dispatch_uid="org_directory_post_delete"
        )
