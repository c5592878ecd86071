#!/usr/bin/env python3
"""Script to create users (typically the first ADMIN) in the database."""

import sys
from pathlib import Path

# Add parent directory to path so we can import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.database import SessionLocal, init_db
from app.core.exceptions import ConflictError
from app.core.roles import UserRole
from app.models.user import User
from app.services.users import create_user as create_user_record


def create_user(email: str, password: str, role: UserRole = UserRole.CUSTOMER) -> User:
    """Create a new user in the database."""
    init_db()
    db = SessionLocal()
    try:
        user = create_user_record(db, email=email, password=password, role=role)
        print("✅ User created successfully!")
        print(f"   Email: {user.email}")
        print(f"   Role: {user.role}")
        print(f"   Active: {user.is_active}")
        return user
    except ConflictError as e:
        print(f"❌ {e.message}: {email}")
        sys.exit(1)
    except Exception as e:
        db.rollback()
        print(f"❌ Error creating user: {e}")
        sys.exit(1)
    finally:
        db.close()


def main():
    """Main entry point for the script."""
    if len(sys.argv) < 3:
        print("Usage: python create_user.py <email> <password> [role]")
        print("\nExample:")
        print("  python create_user.py admin@example.com Admin1234 ADMIN")
        print("  python create_user.py tech1@example.com Tech1234 TECHNICIAN")
        print(f"\nRoles: {', '.join(r.value for r in UserRole)}")
        sys.exit(1)

    email = sys.argv[1]
    password = sys.argv[2]
    role = sys.argv[3].upper() if len(sys.argv) > 3 else UserRole.CUSTOMER.value

    if role not in {r.value for r in UserRole}:
        print(f"❌ Invalid role '{role}'. Must be one of: {', '.join(r.value for r in UserRole)}")
        sys.exit(1)
    if len(password) < 6:
        print("❌ Password must be at least 6 characters long.")
        sys.exit(1)

    create_user(email=email, password=password, role=UserRole(role))


if __name__ == "__main__":
    main()
