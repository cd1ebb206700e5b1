"""
WSGI config for the NSR Loja project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'nsrloja.settings')

application = get_wsgi_application()
