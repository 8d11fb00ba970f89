"""
Demo accounts: a built-in admin login, customer signup and saved addresses.

There are no sessions or tokens; clients pass the user id back on later calls.
"""
import uuid
from typing import Any, Dict, Optional

from passlib.context import CryptContext

from schemas import Address, User

DEMO_ADMIN_EMAIL = "admin@example.com"
DEMO_ADMIN_PASSWORD = "admin"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ADDRESS_REQUIRED = ("full_name", "phone", "street", "city")


class AccountError(Exception):
    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class UserDirectory:
    def __init__(self) -> None:
        self.users: Dict[str, User] = {}
        self._password_hashes: Dict[str, str] = {}
        admin = User(id="u2", name="Admin User", email=DEMO_ADMIN_EMAIL, role="admin")
        self._add(admin, DEMO_ADMIN_PASSWORD)

    def _add(self, user: User, password: str) -> User:
        self.users[user.id] = user
        self._password_hashes[user.id] = pwd_context.hash(password)
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        email = email.lower()
        return next((u for u in self.users.values() if u.email.lower() == email), None)

    def signup(self, name: str, email: str, password: str) -> User:
        if not name or not email or not password:
            raise AccountError("Name, email and password are required.")
        if self.find_by_email(email) is not None:
            raise AccountError("Email already registered")
        return self._add(User(id=f"u-{uuid.uuid4().hex[:8]}", name=name, email=email), password)

    def login(self, email: str, password: str) -> User:
        user = self.find_by_email(email)
        if user is None or not pwd_context.verify(password, self._password_hashes[user.id]):
            raise AccountError("Incorrect email or password", status_code=401)
        return user

    def get(self, user_id: str) -> User:
        user = self.users.get(user_id)
        if user is None:
            raise AccountError("User not found", status_code=404)
        return user

    def add_address(self, user_id: str, fields: Dict[str, Any]) -> Address:
        user = self.get(user_id)
        if any(not fields.get(name) for name in ADDRESS_REQUIRED):
            raise AccountError("Please fill in the required fields: Name, Phone, Street, and City.")
        fields = {k: v for k, v in fields.items() if v is not None}
        address = Address.model_validate({**fields, "id": f"a-{uuid.uuid4().hex[:8]}"})
        user.addresses.append(address)
        return address

    def remove_address(self, user_id: str, address_id: str) -> None:
        user = self.get(user_id)
        user.addresses = [a for a in user.addresses if a.id != address_id]

    def find_address(self, user_id: str, address_id: str) -> Optional[Address]:
        user = self.users.get(user_id)
        if user is None:
            return None
        return next((a for a in user.addresses if a.id == address_id), None)
