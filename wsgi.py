"""
Flask-Migrate / WSGI entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi seed-default-workflow --organization-id 1
"""

from tracker import create_app

app = create_app()
