from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class UserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, username, name, password, **extra_fields):
        if not username:
            raise ValueError("username obrigatorio")
        user = self.model(username=self.normalize_username(username), name=name, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def normalize_username(self, username):
        return self.model.normalize_username(username).strip().lower()

    def create_user(self, username, name, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(username, name, password, **extra_fields)

    def create_superuser(self, username, name, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", User.ROLE_CERIMONIARIO)
        return self._create_user(username, name, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    ROLE_CERIMONIARIO = "CERIMONIARIO"
    ROLE_ACOLITO = "ACOLITO"
    ROLE_CHOICES = [
        (ROLE_CERIMONIARIO, "Cerimoniario"),
        (ROLE_ACOLITO, "Acolito"),
    ]
    DEFAULT_GLOBAL_SCORE = 50

    username = models.CharField(max_length=150, unique=True)
    name = models.CharField(max_length=200)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_ACOLITO)
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    global_score = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        default=DEFAULT_GLOBAL_SCORE,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    last_role_key = models.CharField(max_length=40, blank=True)
    date_joined = models.DateTimeField(auto_now_add=True)

    objects = UserManager()

    USERNAME_FIELD = "username"
    REQUIRED_FIELDS = ["name"]

    def __str__(self):
        return self.name or self.username

    @property
    def is_cerimoniario(self):
        return self.role == self.ROLE_CERIMONIARIO
