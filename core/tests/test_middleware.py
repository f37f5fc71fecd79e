from django.http import HttpResponse
from django.test import RequestFactory, SimpleTestCase

from core.middleware import REQUEST_ID_HEADER, RequestIdMiddleware


class RequestIdMiddlewareTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.seen = {}

        def view(request):
            self.seen["request_id"] = request.request_id
            self.seen["client_ip"] = request.client_ip
            return HttpResponse("ok")

        self.middleware = RequestIdMiddleware(view)

    def test_reuses_safe_incoming_id(self):
        request = self.factory.get("/api/masses/", HTTP_X_REQUEST_ID="abc-123.x")
        response = self.middleware(request)

        self.assertEqual(self.seen["request_id"], "abc-123.x")
        self.assertEqual(response[REQUEST_ID_HEADER], "abc-123.x")
        self.assertEqual(self.seen["client_ip"], "127.0.0.1")

    def test_replaces_unsafe_incoming_id(self):
        request = self.factory.get("/api/masses/", HTTP_X_REQUEST_ID="bad id\nwith newline")
        response = self.middleware(request)

        self.assertNotEqual(response[REQUEST_ID_HEADER], "bad id\nwith newline")
        self.assertEqual(len(response[REQUEST_ID_HEADER]), 36)
