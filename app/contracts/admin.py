"""
Django admin configuration for contract models.
"""

from django.contrib import admin

from contracts.models import Contract, ContractArtifact


class ContractArtifactInline(admin.TabularInline):
    model = ContractArtifact
    extra = 0
    can_delete = False
    readonly_fields = ["kind", "storage_key", "expires_at", "created_at"]


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    """
    Admin configuration for Contract.

    Status is read-only; lifecycle changes go through
    ContractLifecycleService.
    """

    list_display = [
        "id",
        "property_label",
        "landlord",
        "tenant",
        "status",
        "start_date",
        "end_date",
        "created_at",
    ]
    list_filter = ["status", "start_date"]
    search_fields = ["id", "property_label", "envelope_id", "landlord__email", "tenant__email"]
    raw_id_fields = ["landlord", "tenant"]
    readonly_fields = [
        "id",
        "status",
        "end_date",
        "activated_at",
        "cancelled_at",
        "finished_at",
        "version",
        "created_at",
        "updated_at",
    ]
    inlines = [ContractArtifactInline]
    date_hierarchy = "created_at"
