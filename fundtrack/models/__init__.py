"""
FundTrack
SQLAlchemy database instance shared by all models.

Usage:
    from fundtrack.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
