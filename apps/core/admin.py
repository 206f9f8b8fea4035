"""
Admin interface for roles, editorial profiles and service tokens.
"""

from django.contrib import admin

from .models import EditorialProfile, Role, ServiceToken


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ['type', 'name', 'created_at']
    search_fields = ['type', 'name']
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(EditorialProfile)
class EditorialProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'role', 'updated_at']
    list_filter = ['role']
    search_fields = ['user__username', 'user__email']
    raw_id_fields = ['user']
    readonly_fields = ['id', 'created_at', 'updated_at']

    def save_model(self, request, obj, form, change):
        if change and 'role' in form.changed_data:
            obj.assign_role(form.cleaned_data['role'], assigned_by=request.user)
            return
        super().save_model(request, obj, form, change)


@admin.register(ServiceToken)
class ServiceTokenAdmin(admin.ModelAdmin):
    """
    Service tokens are issued with `manage.py create_service_token`;
    the admin only lists and deactivates them.
    """
    list_display = ['name', 'prefix', 'is_active', 'last_used_at', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'prefix']
    readonly_fields = ['id', 'prefix', 'key_hash', 'last_used_at', 'created_at', 'updated_at']
    actions = ['deactivate']

    def has_add_permission(self, request):
        return False

    @admin.action(description='Deactivate selected tokens')
    def deactivate(self, request, queryset):
        updated = queryset.update(is_active=False)
        self.message_user(request, f'{updated} token(s) deactivated.')
