"""
WSGI entry point (gunicorn wsgi:app) and Flask-Migrate / Alembic target.

Usage:
    flask --app wsgi db init       # first time only (creates migrations/)
    flask --app wsgi db migrate -m "description"
    flask --app wsgi db upgrade
    flask --app wsgi purge-activity
"""

from statusdesk import create_app

app = create_app()
