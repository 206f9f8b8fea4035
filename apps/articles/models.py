"""
Article models for Newsdesk.
Editorial content and its workflow state.
"""

from django.conf import settings
from django.db import models
from django.utils.text import slugify

from apps.core.models import BaseModel

from .state_machine import WorkflowStatus


def unique_slug(model, value, instance_pk=None, max_length=255):
    """Slugify ``value`` and add a numeric suffix until it is unused."""
    base = slugify(value)[:max_length - 8] or 'untitled'
    candidate = base
    suffix = 2
    queryset = model._default_manager.all()
    if instance_pk is not None:
        queryset = queryset.exclude(pk=instance_pk)
    while queryset.filter(slug=candidate).exists():
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate


class Tag(BaseModel):
    """
    A topic label attached to articles.
    """

    name = models.CharField(
        max_length=100,
        unique=True,
        verbose_name='Name'
    )

    slug = models.SlugField(
        max_length=120,
        unique=True,
        blank=True,
        verbose_name='Slug'
    )

    class Meta:
        db_table = 'tags'
        ordering = ['name']
        verbose_name = 'Tag'
        verbose_name_plural = 'Tags'

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(Tag, self.name, self.pk, max_length=120)
        super().save(*args, **kwargs)


class PublishedArticleManager(models.Manager):
    """Articles visible to the public."""

    def get_queryset(self):
        return super().get_queryset().filter(workflow_status=WorkflowStatus.PUBLISHED.value)


class Article(BaseModel):
    """
    An editorial article.

    ``created_by`` is set once at creation and never changed through the API;
    ownership checks compare against it.
    """

    WORKFLOW_STATUS_CHOICES = WorkflowStatus.choices()

    title = models.CharField(
        max_length=255,
        verbose_name='Title'
    )

    slug = models.SlugField(
        max_length=255,
        unique=True,
        blank=True,
        verbose_name='Slug',
        help_text='URL slug, generated from the title when blank'
    )

    summary = models.TextField(
        blank=True,
        default='',
        verbose_name='Summary'
    )

    body = models.TextField(
        blank=True,
        default='',
        verbose_name='Body'
    )

    tags = models.ManyToManyField(
        Tag,
        blank=True,
        related_name='articles',
        verbose_name='Tags'
    )

    # Null only for content created by service credentials
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='articles',
        verbose_name='Created By'
    )

    # Workflow
    workflow_status = models.CharField(
        max_length=20,
        choices=WORKFLOW_STATUS_CHOICES,
        default=WorkflowStatus.DRAFT.value,
        db_index=True,
        verbose_name='Workflow Status'
    )

    published_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name='Published At',
        help_text='Set while the article is published, cleared otherwise'
    )

    submitted_for_review_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name='Submitted For Review At'
    )

    # Review
    review_notes = models.TextField(
        blank=True,
        default='',
        verbose_name='Review Notes'
    )

    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviewed_articles',
        verbose_name='Reviewed By'
    )

    reviewed_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name='Reviewed At'
    )

    objects = models.Manager()
    published = PublishedArticleManager()

    class Meta:
        db_table = 'articles'
        ordering = ['-created_at']
        verbose_name = 'Article'
        verbose_name_plural = 'Articles'
        indexes = [
            models.Index(fields=['workflow_status', '-published_at']),
            models.Index(fields=['created_by', 'workflow_status']),
        ]

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(Article, self.title, self.pk)
        super().save(*args, **kwargs)

    @property
    def status(self) -> WorkflowStatus:
        return WorkflowStatus.from_string(self.workflow_status or WorkflowStatus.DRAFT.value)

    @property
    def is_published(self) -> bool:
        return self.workflow_status == WorkflowStatus.PUBLISHED.value
