#!/usr/bin/env python3
"""
Database management script for deployment.

Usage:
    python manage_db.py init                         # Create tables
    python manage_db.py create-organizer USER PASS   # Add an organizer login
"""
import sys

from culturefest.app import create_app
from culturefest.models import db, Organizer


def init():
    """Create any missing tables."""
    print("Creating database tables...")
    app = create_app()
    with app.app_context():
        db.create_all()
    print("✓ Database tables ready.")


def create_organizer(username: str, password: str):
    app = create_app()
    with app.app_context():
        if Organizer.query.filter_by(username=username).first():
            print(f"Organizer '{username}' already exists")
            sys.exit(1)
        db.session.add(Organizer.create_organizer(username, password))
        db.session.commit()
    print(f"✓ Organizer '{username}' created.")


if __name__ == '__main__':
    command = sys.argv[1] if len(sys.argv) > 1 else 'init'
    
    if command == 'init':
        init()
    elif command == 'create-organizer' and len(sys.argv) == 4:
        create_organizer(sys.argv[2], sys.argv[3])
    else:
        print(__doc__)
        sys.exit(1)
