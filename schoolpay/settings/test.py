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

EDVIRON = {
    'BASE_URL': 'https://gateway.example.com/erp/',
    'API_KEY': 'test-api-key',
    'PG_SECRET': 'test-pg-secret',
    'CALLBACK_URL': 'https://api.example.com/api/payment-callback',
    'TIMEOUT': 5,
}

FRONTEND_URL = 'https://dashboard.example.com'
CORS_ALLOWED_ORIGINS = ['https://dashboard.example.com']

JWT_SECRET = 'test-jwt-secret'

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
