from django.test import SimpleTestCase, override_settings


@override_settings(DEBUG=False)
class ErrorHandlerTests(SimpleTestCase):
    def test_404_is_json(self):
        response = self.client.get('/this-url-does-not-exist/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"message": "Not Found", "path": "/this-url-does-not-exist/"})

    def test_notification_routes_are_under_api(self):
        response = self.client.get('/doku/notification')
        self.assertEqual(response.status_code, 404)
