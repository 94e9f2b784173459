"""
WSGI entry point.

Usage:
    flask --app wsgi briefing snapshot.json --days 30
"""

from portfolio_insights import create_app

app = create_app()
