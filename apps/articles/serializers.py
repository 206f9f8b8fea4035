"""
Article and tag serializers.
"""

from rest_framework import serializers

from .models import Article, Tag
from .state_machine import VALID_STATUSES


class TagSerializer(serializers.ModelSerializer):
    """Serializer for Tag model."""

    class Meta:
        model = Tag
        fields = ['id', 'name', 'slug', 'created_at']
        read_only_fields = ['id', 'created_at']
        extra_kwargs = {'slug': {'required': False}}


class UserSummaryField(serializers.Field):
    """Compact read-only representation of a user."""

    def __init__(self, **kwargs):
        kwargs['read_only'] = True
        super().__init__(**kwargs)

    def to_representation(self, user):
        return {'id': user.pk, 'username': user.get_username()}


class ArticleListSerializer(serializers.ModelSerializer):
    """Compact serializer for article lists."""

    tags = TagSerializer(many=True, read_only=True)
    created_by = UserSummaryField()

    class Meta:
        model = Article
        fields = [
            'id',
            'title',
            'slug',
            'summary',
            'tags',
            'created_by',
            'workflow_status',
            'published_at',
            'created_at',
            'updated_at',
        ]


class ArticleDetailSerializer(serializers.ModelSerializer):
    """Full article, including workflow and review metadata."""

    tags = TagSerializer(many=True, read_only=True)
    created_by = UserSummaryField()
    reviewed_by = UserSummaryField()

    class Meta:
        model = Article
        fields = [
            'id',
            'title',
            'slug',
            'summary',
            'body',
            'tags',
            'created_by',

            # Workflow
            'workflow_status',
            'published_at',
            'submitted_for_review_at',

            # Review
            'review_notes',
            'reviewed_by',
            'reviewed_at',

            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class ArticleWriteSerializer(serializers.ModelSerializer):
    """
    Input for create and update.

    ``created_by`` and the workflow timestamps are never writable; the
    status is checked by the workflow policy before this serializer runs.
    """

    tags = serializers.PrimaryKeyRelatedField(
        many=True,
        queryset=Tag.objects.all(),
        required=False,
    )
    workflow_status = serializers.ChoiceField(
        choices=VALID_STATUSES,
        required=False,
    )

    class Meta:
        model = Article
        fields = ['title', 'slug', 'summary', 'body', 'tags', 'workflow_status']
        extra_kwargs = {'slug': {'required': False}}


class ReviewSerializer(serializers.Serializer):
    """Body of approve/reject."""

    notes = serializers.CharField(required=False, allow_blank=True, default='')
