"""
BIM Issue Tracker
Database models package.

All models share the single Flask-SQLAlchemy instance defined here.
Domain modules import it as ``from bimtrack.models import db``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
