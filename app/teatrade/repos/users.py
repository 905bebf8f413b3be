from sqlalchemy import or_, select

from app.teatrade.db.models import Admin, User


class UserRepository:
    def __init__(self, db):
        self.db = db

    def get_by_cognito_id(self, user_cognito_id: str) -> User | None:
        stmt = select(User).where(User.user_cognito_id == user_cognito_id)
        return self.db.execute(stmt).scalars().first()

    def find_conflict(self, user_cognito_id: str, email: str) -> User | None:
        stmt = select(User).where(or_(User.user_cognito_id == user_cognito_id, User.email == email))
        return self.db.execute(stmt).scalars().first()

    def create(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user


class AdminRepository:
    def __init__(self, db):
        self.db = db

    def get_by_cognito_id(self, admin_cognito_id: str) -> Admin | None:
        stmt = select(Admin).where(Admin.admin_cognito_id == admin_cognito_id)
        return self.db.execute(stmt).scalars().first()

    def get_or_create(self, admin_cognito_id: str, *, email: str | None) -> tuple[Admin, bool]:
        admin = self.get_by_cognito_id(admin_cognito_id)
        if admin is not None:
            return admin, False
        admin = Admin(
            admin_cognito_id=admin_cognito_id,
            name=email or "Admin",
            email=email or f"admin-{admin_cognito_id}@example.com",
        )
        self.db.add(admin)
        self.db.flush()
        return admin, True
