import structlog
from django.apps import apps
from django.contrib.auth import authenticate, login, logout
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.services.errors import UnauthenticatedError

from .serializers import LoginSerializer, UserSerializer

logger = structlog.get_logger(__name__)


class LoginView(APIView):
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        limiter = apps.get_app_config("accounts").login_rate_limiter
        limiter.hit(getattr(request, "client_ip", None) or request.META.get("REMOTE_ADDR", "unknown"))

        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = authenticate(
            request,
            username=serializer.validated_data["username"].strip().lower(),
            password=serializer.validated_data["password"],
        )
        if user is None:
            logger.info("login_failed", username=serializer.validated_data["username"])
            raise UnauthenticatedError("Usuario ou senha invalidos")
        login(request, user)
        logger.info("login_succeeded", user_id=user.pk)
        return Response({"ok": True, "user": UserSerializer(user).data})


class LogoutView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        logout(request)
        return Response({"ok": True}, status=status.HTTP_200_OK)


class MeView(APIView):
    def get(self, request):
        return Response({"user": UserSerializer(request.user).data})
