# backend/create_initial_admin.py

import os

from tmsdb.apps.accounts import models
from tmsdb.apps.audit.services import RequestMeta
from tmsdb.apps.accounts import schemas, services
from tmsdb.config import load_settings
from tmsdb.database import init_database


def main() -> None:
    settings = load_settings()
    database = init_database(settings)
    db = database.write_session()
    try:
        username = os.getenv("INITIAL_ADMIN_USERNAME", "admin")
        password = os.getenv("INITIAL_ADMIN_PASSWORD", "ChangeMe123!")

        existing = db.query(models.User).filter(models.User.username == username).first()
        if existing:
            print(f"[INFO] User already exists: id={existing.id}, username={existing.username}")
            return

        user = services.create_user(
            db,
            payload=schemas.UserCreate(
                username=username,
                password=password,
                first_name="HR",
                last_name="Admin",
                role=models.UserRole.HR_ADMIN,
            ),
            actor=None,
            meta=RequestMeta(user_agent="create_initial_admin"),
        )

        print("[OK] Created admin user:")
        print(f"  id:       {user.id}")
        print(f"  username: {user.username}")
        print(f"  role:     {user.role.value}")
        print(f"  login password: {password}")
    finally:
        db.close()
        database.dispose()


if __name__ == "__main__":
    main()
