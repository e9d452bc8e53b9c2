"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi provision-tenant "Acme Insulation" acme
    gunicorn wsgi:app
"""

from foamops import create_app

app = create_app()
