from django.apps import apps
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIClient

from core.services.errors import RateLimitedError

from .models import User
from .services.lookup import active_user_ids_with_role, find_profiles, get_user_name_map, parse_user_id
from .services.rate_limit import LoginRateLimiter


class UserModelTests(TestCase):
    def test_create_user(self):
        user = User.objects.create_user(username=" Joao ", name="Joao", password="pass")
        self.assertTrue(user.check_password("pass"))
        self.assertEqual(user.username, "joao")
        self.assertEqual(user.role, User.ROLE_ACOLITO)
        self.assertEqual(user.global_score, 50)

    def test_create_superuser_is_cerimoniario(self):
        user = User.objects.create_superuser(username="admin", name="Admin", password="pass")
        self.assertTrue(user.is_superuser)
        self.assertTrue(user.is_cerimoniario)


class LookupTests(TestCase):
    def test_parse_user_id(self):
        self.assertEqual(parse_user_id(7), 7)
        self.assertEqual(parse_user_id(" 12 "), 12)
        for value in (0, -3, "abc", True, None, 1.5):
            self.assertIsNone(parse_user_id(value))

    def test_role_and_profile_lookups(self):
        acolyte = User.objects.create_user(username="ac", name="Acolito", last_role_key="MISSAL")
        inactive = User.objects.create_user(username="old", name="Antigo", is_active=False)
        cerimoniario = User.objects.create_user(username="cer", name="Cer", role=User.ROLE_CERIMONIARIO)

        self.assertEqual(
            active_user_ids_with_role([acolyte.pk, inactive.pk, cerimoniario.pk], User.ROLE_ACOLITO), {acolyte.pk}
        )
        self.assertEqual(get_user_name_map([acolyte.pk, str(acolyte.pk), "x"]), {acolyte.pk: "Acolito"})
        [profile] = find_profiles([acolyte.pk])
        self.assertEqual(profile.last_role_key, "MISSAL")
        self.assertEqual(profile.global_score, 50)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class LoginRateLimiterTests(SimpleTestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.limiter = LoginRateLimiter(max_attempts=2, window_seconds=60, clock=self.clock, wall_clock=lambda: 0.0)

    def test_blocks_after_max_attempts_until_window_resets(self):
        self.limiter.hit("1.2.3.4")
        self.limiter.hit("1.2.3.4")
        with self.assertRaises(RateLimitedError) as ctx:
            self.limiter.hit("1.2.3.4")
        self.assertEqual(ctx.exception.details, {"resetAt": "1970-01-01T00:01:00+00:00"})

        self.limiter.hit("5.6.7.8")
        self.clock.now += 60
        self.limiter.hit("1.2.3.4")

    def test_reset(self):
        self.limiter.hit("a")
        self.limiter.hit("a")
        self.limiter.reset("a")
        self.limiter.hit("a")

    def test_expired_windows_are_dropped_when_table_is_full(self):
        limiter = LoginRateLimiter(max_attempts=2, window_seconds=60, max_tracked_keys=2, clock=self.clock)
        limiter.hit("a")
        limiter.hit("b")
        self.assertEqual(len(limiter), 2)

        self.clock.now += 30
        limiter.hit("c")
        self.assertEqual(len(limiter), 3)

        self.clock.now += 31
        limiter.hit("d")
        self.assertEqual(len(limiter), 2)
        limiter.hit("c")
        with self.assertRaises(RateLimitedError):
            limiter.hit("c")


class AuthApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username="cer", name="Cer", password="segredo", role=User.ROLE_CERIMONIARIO)
        self.limiter = apps.get_app_config("accounts").login_rate_limiter
        self.limiter.reset()
        self.addCleanup(self.limiter.reset)

    def test_login_and_me(self):
        response = self.client.post("/api/auth/login/", {"username": "CER", "password": "segredo"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["user"]["role"], User.ROLE_CERIMONIARIO)

        me = self.client.get("/api/auth/me/")
        self.assertEqual(me.json()["user"]["username"], "cer")

        self.client.post("/api/auth/logout/")
        self.assertEqual(self.client.get("/api/auth/me/").status_code, 401)

    def test_invalid_credentials(self):
        response = self.client.post("/api/auth/login/", {"username": "cer", "password": "errada"}, format="json")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "UNAUTHENTICATED")

    def test_login_is_rate_limited(self):
        for _ in range(self.limiter.max_attempts):
            self.client.post("/api/auth/login/", {"username": "cer", "password": "errada"}, format="json")

        response = self.client.post("/api/auth/login/", {"username": "cer", "password": "segredo"}, format="json")

        self.assertEqual(response.status_code, 429)
        body = response.json()["error"]
        self.assertEqual(body["code"], "RATE_LIMITED")
        self.assertIn("resetAt", body["details"])
