#!/usr/bin/env python
"""
Quick local setup.

This script:
1. Configures Django settings
2. Checks the database connection
3. Runs the migrations
4. Optionally creates a staff user for the admin and the API

Usage:
    python scripts/quick_setup.py
    python scripts/quick_setup.py --sqlite --create-admin admin
    python scripts/quick_setup.py --check-only
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def setup_django(force_sqlite: bool = False):
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'src.config.settings')
    if force_sqlite:
        os.environ['DATABASE_URL'] = 'sqlite:///db.sqlite3'

    import django
    django.setup()


def check_connection() -> bool:
    from src.adapters.django_app.shared.database import check_database_connection

    print("Checking database connection...")
    result = check_database_connection()
    if result['healthy']:
        print(f"  OK ({result['engine']})")
    else:
        print(f"  FAILED: {result['error']}")
    return result['healthy']


def run_migrations():
    from django.core.management import call_command

    print("Running migrations...")
    call_command('migrate', verbosity=1)


def create_admin(username: str, password: str):
    from django.contrib.auth import get_user_model

    User = get_user_model()
    if User.objects.filter(username=username).exists():
        print(f"User {username} already exists")
        return
    User.objects.create_superuser(username=username, email=f"{username}@localhost", password=password)
    print(f"Created staff user {username}")


def show_info():
    from django.conf import settings

    print("\n" + "=" * 60)
    print(f"  Database engine: {settings.DATABASES['default']['ENGINE']}")
    print(f"  Database name:   {settings.DATABASES['default']['NAME']}")
    print(f"  Event publisher: {settings.EVENT_PUBLISHER_MODE}")
    print(f"  Debug:           {settings.DEBUG}")
    print("=" * 60)
    print("\nNext steps:")
    print("   1. django-admin runserver --settings=src.config.settings --pythonpath=.")
    print("   2. celery -A src.config.celery worker -B -l INFO")
    print("   3. Open http://localhost:8000/admin/ and http://localhost:8000/health/\n")


def main():
    parser = argparse.ArgumentParser(description='Quick local setup')
    parser.add_argument('--sqlite', action='store_true', help='Use ./db.sqlite3 regardless of the environment')
    parser.add_argument('--check-only', action='store_true', help='Only check the database connection')
    parser.add_argument('--create-admin', metavar='USERNAME', help='Create a staff user')
    parser.add_argument('--password', default='admin', help='Password for --create-admin')

    args = parser.parse_args()

    setup_django(force_sqlite=args.sqlite)

    if not check_connection():
        print("\nMake sure the database is running, or pass --sqlite.")
        sys.exit(1)
    if args.check_only:
        return

    run_migrations()

    if args.create_admin:
        create_admin(args.create_admin, args.password)

    show_info()


if __name__ == '__main__':
    main()
