"""Serializers for the current user's profile."""

from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework import serializers

User = get_user_model()


class ProfileSerializer(serializers.ModelSerializer):
    """Profile details, including the Connect onboarding state for salon owners."""

    avatar_url = serializers.ReadOnlyField()
    stripe_connect_onboarded = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "full_name",
            "phone",
            "bio",
            "user_type",
            "profile_image_url",
            "avatar_url",
            "stripe_connect_onboarded",
            "date_joined",
        ]
        read_only_fields = (
            "id",
            "username",
            "user_type",
            "avatar_url",
            "stripe_connect_onboarded",
            "date_joined",
        )

    def get_stripe_connect_onboarded(self, obj) -> bool:
        payout_account = getattr(obj, "payout_account", None)
        return bool(payout_account and payout_account.is_fully_onboarded)
