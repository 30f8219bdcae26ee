"""
WSGI entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi import-workbook path/to/workbook.xlsx
"""

from buildtrack import create_app

app = create_app()
