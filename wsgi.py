"""
Flask-Migrate / Alembic entry point.

Usage:
    flask db init       # first time only (creates migrations/)
    flask db migrate -m "description"
    flask db upgrade
    flask bcf-import <project_id> <archive.bcfzip> --user <email>
"""

from bimtrack import create_app

app = create_app()
