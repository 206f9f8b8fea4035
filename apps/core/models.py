"""
Core models for Newsdesk.
Base classes, editorial roles and service credentials.
"""

import hashlib
import logging
import secrets
import uuid
from django.conf import settings
from django.db import models
from django.db.models.signals import post_save
from django.dispatch import receiver
from django.utils import timezone

logger = logging.getLogger(__name__)


class BaseModel(models.Model):
    """
    Abstract base model with common fields for all Newsdesk models.
    Provides UUID primary key and timestamp tracking.
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        verbose_name='ID',
        help_text='Unique identifier (UUID)'
    )

    created_at = models.DateTimeField(
        default=timezone.now,
        editable=False,
        verbose_name='Created At',
        help_text='Timestamp when record was created'
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name='Updated At',
        help_text='Timestamp when record was last updated'
    )

    class Meta:
        abstract = True
        ordering = ['-created_at']

    def __str__(self):
        """
        Default string representation.
        Should be overridden in child classes.
        """
        return f"{self.__class__.__name__} ({self.id})"


class Role(BaseModel):
    """
    An editorial role as stored by the host system.

    ``type`` is the machine tag (e.g. 'reporter'); ``name`` is the display
    name, which some accounts carry instead (e.g. 'Administrator'). Policies
    match either one, case-insensitively.
    """

    type = models.SlugField(
        max_length=50,
        unique=True,
        verbose_name='Type',
        help_text='Machine tag, e.g. reporter'
    )

    name = models.CharField(
        max_length=100,
        verbose_name='Name',
        help_text='Display name, e.g. Reporter'
    )

    description = models.TextField(
        blank=True,
        default='',
        verbose_name='Description'
    )

    class Meta:
        db_table = 'editorial_roles'
        ordering = ['type']
        verbose_name = 'Role'
        verbose_name_plural = 'Roles'

    def __str__(self):
        return self.name or self.type

    def save(self, *args, **kwargs):
        self.type = (self.type or '').strip().lower()
        super().save(*args, **kwargs)


class EditorialProfile(BaseModel):
    """
    Editorial profile for a user.
    Linked 1:1 with Django User model.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='editorial_profile',
        verbose_name='User',
        help_text='The associated Django user account'
    )

    # A user without a role has no editorial capabilities
    role = models.ForeignKey(
        Role,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='profiles',
        verbose_name='Role',
        help_text='Editorial role determining permissions'
    )

    class Meta:
        db_table = 'editorial_profiles'
        verbose_name = 'Editorial Profile'
        verbose_name_plural = 'Editorial Profiles'

    def __str__(self):
        return f"{self.user.get_username()} ({self.role_type or 'no role'})"

    @property
    def role_type(self):
        return self.role.type if self.role_id else None

    def assign_role(self, role, assigned_by=None):
        """Change the user's role and log the change."""
        previous = self.role_type
        self.role = role
        self.save(update_fields=['role', 'updated_at'])
        logger.info(
            "Editorial role changed for user %s: %s → %s (by %s)",
            self.user_id,
            previous or 'none',
            self.role_type or 'none',
            getattr(assigned_by, 'pk', None) or 'system',
        )


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_editorial_profile(sender, instance, created, **kwargs):
    """Auto-create EditorialProfile when a new User is created."""
    if created:
        EditorialProfile.objects.get_or_create(user=instance)


# =============================================================================
# Service credentials
# =============================================================================

def hash_service_key(raw_key: str) -> str:
    """SHA-256 hex digest of a raw service key."""
    return hashlib.sha256(raw_key.encode('utf-8')).hexdigest()


class ServiceTokenManager(models.Manager):

    def create_token(self, name: str):
        """
        Create a token.

        Returns:
            (token, raw_key). The raw key is not stored and cannot be
            recovered later.
        """
        raw_key = secrets.token_urlsafe(32)
        token = self.create(
            name=name,
            prefix=raw_key[:8],
            key_hash=hash_service_key(raw_key),
        )
        logger.info("Service token created: %s (%s...)", name, token.prefix)
        return token, raw_key

    def get_active(self, raw_key: str):
        """Look up an active token by its raw key. Returns None if unknown."""
        return self.filter(key_hash=hash_service_key(raw_key), is_active=True).first()


class ServiceToken(BaseModel):
    """
    Credential for trusted first-party automation.

    Requests authenticated with a service token bypass editorial policies.
    """

    name = models.CharField(
        max_length=100,
        unique=True,
        verbose_name='Name',
        help_text='What uses this token, e.g. frontend-ssr'
    )

    prefix = models.CharField(
        max_length=8,
        db_index=True,
        verbose_name='Prefix',
        help_text='First characters of the key, for identification'
    )

    key_hash = models.CharField(
        max_length=64,
        unique=True,
        verbose_name='Key Hash'
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        verbose_name='Active'
    )

    last_used_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name='Last Used'
    )

    objects = ServiceTokenManager()

    class Meta:
        db_table = 'service_tokens'
        ordering = ['name']
        verbose_name = 'Service Token'
        verbose_name_plural = 'Service Tokens'

    def __str__(self):
        return f"{self.name} ({self.prefix}...)"

    # DRF checks request.user.is_authenticated; a token acting as the user
    # must answer the same questions.
    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    def touch(self):
        """Record use of this token."""
        now = timezone.now()
        ServiceToken.objects.filter(pk=self.pk).update(last_used_at=now)
        self.last_used_at = now
