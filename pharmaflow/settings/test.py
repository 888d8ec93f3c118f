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

TELEBIRR_APP_ID = 'test-app-id'
TELEBIRR_FABRIC_APP_ID = 'test-fabric-app-id'
TELEBIRR_SHORT_CODE = '192321'
TELEBIRR_APP_SECRET = 'test-app-secret'
TELEBIRR_BASE_URL = 'https://gateway.test'
TELEBIRR_NOTIFY_URL = 'https://pharmaflow.test/telebirr/callback'
TELEBIRR_RETURN_URL = 'https://pharmaflow.test/payment/return'
TELEBIRR_H5_URL = 'https://h5.gateway.test'
# Keys are swapped for generated ones in the tests that sign or verify.
TELEBIRR_PRIVATE_KEY = 'test-private-key'
TELEBIRR_PUBLIC_KEY = 'test-public-key'
