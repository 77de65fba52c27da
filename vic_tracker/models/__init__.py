"""
VIC Tracker
SQLAlchemy instance shared by every model module.

Usage:
    from vic_tracker.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
