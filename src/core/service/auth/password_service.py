from passlib.context import CryptContext

from src.infra.config.settings import get_settings

settings = get_settings()


class PasswordService:
    """Password hashing backed by passlib."""

    def __init__(self, rounds: int = None):
        self._context = CryptContext(
            schemes=["pbkdf2_sha256"],
            deprecated="auto",
            pbkdf2_sha256__rounds=rounds or settings.PASSWORD_HASH_ROUNDS,
        )

    def hash_password(self, password: str) -> str:
        if not password:
            raise ValueError("password must not be blank")
        return self._context.hash(password)

    def verify_password(self, password: str, password_hash: str) -> bool:
        if not password or not password_hash:
            return False
        try:
            return self._context.verify(password, password_hash)
        except ValueError:
            # Unrecognised or corrupted hash
            return False


password_service = PasswordService()
