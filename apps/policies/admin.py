"""
Admin interface for the policy decision audit trail (read-only).
"""

from django.contrib import admin

from .models import PolicyDecisionLog


@admin.register(PolicyDecisionLog)
class PolicyDecisionLogAdmin(admin.ModelAdmin):
    list_display = ['decided_at', 'chain', 'policy', 'outcome', 'reason_code', 'principal_id', 'resource']
    list_filter = ['outcome', 'reason_code', 'chain', 'credential_kind']
    search_fields = ['principal_id', 'resource', 'request_id', 'message']
    date_hierarchy = 'decided_at'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
