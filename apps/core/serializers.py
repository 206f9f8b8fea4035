"""
Serializers for authentication, roles and editorial profiles.
"""

from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from apps.policies.roles import capabilities_of, resolve_role

from .models import EditorialProfile, Role

User = get_user_model()


class RoleSerializer(serializers.ModelSerializer):
    """Serializer for Role model."""

    class Meta:
        model = Role
        fields = ['id', 'type', 'name', 'description']
        read_only_fields = ['id']


class EditorialProfileSerializer(serializers.ModelSerializer):
    """Serializer for EditorialProfile with resolved capabilities."""

    role = RoleSerializer(read_only=True)
    capabilities = serializers.SerializerMethodField()

    class Meta:
        model = EditorialProfile
        fields = [
            'id',
            'role',
            'capabilities',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_capabilities(self, obj):
        role = obj.role
        canonical = resolve_role(role.type, role.name) if role else None
        return sorted(c.value for c in capabilities_of(canonical))


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User with nested profile."""

    profile = EditorialProfileSerializer(source='editorial_profile', read_only=True)

    class Meta:
        model = User
        fields = [
            'id',
            'username',
            'email',
            'first_name',
            'last_name',
            'is_active',
            'date_joined',
            'last_login',
            'profile',
        ]
        read_only_fields = ['id', 'date_joined', 'last_login', 'is_active']


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Custom token serializer that includes user info in response.
    """

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)

        # Add custom claims
        token['username'] = user.username
        token['email'] = user.email

        profile = getattr(user, 'editorial_profile', None)
        if profile is not None and profile.role is not None:
            token['role'] = profile.role.type

        return token

    def validate(self, attrs):
        data = super().validate(attrs)

        # Add user data to response
        data['user'] = UserSerializer(self.user).data

        return data


class UserUpdateSerializer(serializers.ModelSerializer):
    """Serializer for updating user info. The role is not editable here."""

    class Meta:
        model = User
        fields = ['first_name', 'last_name', 'email']
