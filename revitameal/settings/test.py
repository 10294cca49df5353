from .base import *

DEBUG = False

SECRET_KEY = 'test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

ALLOWED_HOSTS = ['testserver']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
DEFAULT_FROM_EMAIL = 'orders@revitameal.test'

MIDTRANS_SERVER_KEY = 'SB-Mid-server-test'
MIDTRANS_BASE_URL = 'https://api.sandbox.midtrans.com'

DOKU_CLIENT_ID = 'BRN-0001-TEST'
DOKU_SECRET_KEY = 'SK-test-secret'
DOKU_BASE_URL = 'https://api-sandbox.doku.com'
DOKU_NOTIFICATION_TARGET = '/api/doku/notification'
DOKU_SIGNATURE_MAX_AGE = 0

PAYMENTS_HTTP_TIMEOUT = 2
