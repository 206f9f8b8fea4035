"""
Admin interface for articles and tags.
"""

from django.contrib import admin
from django.utils.html import format_html

from .models import Article, Tag
from .state_machine import WorkflowStatus


@admin.register(Tag)
class TagAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'created_at']
    search_fields = ['name', 'slug']
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(Article)
class ArticleAdmin(admin.ModelAdmin):
    """
    Admin interface for Article model.

    Workflow fields are read-only here; status changes go through the API so
    they are authorized and recorded like any other transition.
    """

    list_display = [
        'title_short',
        'created_by',
        'status_badge',
        'published_at',
        'updated_at',
    ]

    list_filter = [
        'workflow_status',
        'tags',
        ('published_at', admin.DateFieldListFilter),
    ]

    search_fields = [
        'title',
        'slug',
        'created_by__username',
    ]

    raw_id_fields = ['created_by', 'reviewed_by']
    filter_horizontal = ['tags']

    readonly_fields = [
        'id',
        'workflow_status',
        'published_at',
        'submitted_for_review_at',
        'reviewed_by',
        'reviewed_at',
        'created_at',
        'updated_at',
    ]

    fieldsets = (
        ('Content', {
            'fields': ('title', 'slug', 'summary', 'body', 'tags', 'created_by')
        }),
        ('Workflow', {
            'fields': ('workflow_status', 'published_at', 'submitted_for_review_at')
        }),
        ('Review', {
            'fields': ('review_notes', 'reviewed_by', 'reviewed_at')
        }),
        ('Metadata', {
            'fields': ('id', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    STATUS_COLORS = {
        WorkflowStatus.DRAFT.value: '#6c757d',
        WorkflowStatus.REVIEW.value: '#fd7e14',
        WorkflowStatus.PUBLISHED.value: '#28a745',
    }

    def title_short(self, obj):
        if len(obj.title) > 60:
            return obj.title[:60] + '...'
        return obj.title
    title_short.short_description = 'Title'

    def status_badge(self, obj):
        color = self.STATUS_COLORS.get(obj.workflow_status, '#dc3545')
        return format_html(
            '<span style="background-color: {}; color: white; padding: 2px 6px; '
            'border-radius: 3px;">{}</span>',
            color, obj.workflow_status,
        )
    status_badge.short_description = 'Status'
    status_badge.admin_order_field = 'workflow_status'
