"""
BuildTrack persistence layer.

Every model module imports ``db`` from here; ``create_app`` binds it to the
Flask app and imports the model modules so their tables are registered.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
