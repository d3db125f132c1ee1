#!/usr/bin/env python3
"""
Make Admin Script
Grants the admin role to a member of the Dues Engine admin console.

Creates the member if the email is unknown, then prints a bearer token
for local use against the admin API.

Usage:
    python -m scripts.make_admin <email>

Example:
    python -m scripts.make_admin admin@example.org
"""
import sys
import os
from uuid import uuid4

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from dues_engine.database import SessionLocal, init_db
from dues_engine.models.db_models import UserDB, UserRole
from dues_engine.auth import create_access_token


def make_admin(email: str) -> bool:
    """Promote (or create) the member with this email to admin."""
    # Ensure tables exist
    init_db()

    db: Session = SessionLocal()
    try:
        user = db.query(UserDB).filter(UserDB.email == email).first()

        if user is None:
            user = UserDB(
                id=str(uuid4()),
                email=email,
                role=UserRole.ADMIN.value,
            )
            db.add(user)
            print(f"Created admin user '{email}'.")
        elif user.is_admin:
            print(f"User '{email}' is already an admin.")
        else:
            user.role = UserRole.ADMIN.value
            print(f"Upgraded existing user '{email}' to admin role.")

        db.commit()

        print(f"  User ID: {user.id}")
        print(f"  Token:   {create_access_token(user.id, user.email)}")
        return True

    except Exception as e:
        print(f"Error making admin user: {e}")
        db.rollback()
        return False
    finally:
        db.close()


def main():
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)

    email = sys.argv[1]
    if "@" not in email:
        print("Error: Invalid email format.")
        sys.exit(1)

    success = make_admin(email)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
