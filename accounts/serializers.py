from rest_framework import serializers

from .models import User


class UserSerializer(serializers.ModelSerializer):
    globalScore = serializers.IntegerField(source="global_score", allow_null=True)
    lastRoleKey = serializers.CharField(source="last_role_key")

    class Meta:
        model = User
        fields = ["id", "username", "name", "role", "globalScore", "lastRoleKey"]


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    password = serializers.CharField(trim_whitespace=False)
