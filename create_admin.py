"""
Create an admin account, or promote an existing user to admin.

Usage:
    python create_admin.py admin@example.com 'a-strong-password'
"""
import sys

from app.database import SessionLocal
from app.models.user import User, UserRole
from app.auth.security import hash_password

if len(sys.argv) != 3:
    print("Usage: python create_admin.py <email> <password>")
    sys.exit(1)

email, password = sys.argv[1].strip().lower(), sys.argv[2]

db = SessionLocal()
try:
    user = db.query(User).filter(User.email == email).first()
    if user:
        user.role = UserRole.ADMIN
        user.password_hash = hash_password(password)
        db.commit()
        print(f'Admin promoted: id={user.id}')
    else:
        user = User(email=email, password_hash=hash_password(password), role=UserRole.ADMIN)
        db.add(user)
        db.commit()
        print(f'Admin created: id={user.id}')
finally:
    db.close()
