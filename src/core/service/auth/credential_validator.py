"""
Stateless credential rules for passwords and email addresses.

Password policy: every character must come from [A-Za-z0-9@$!%*?&] and at least
one lowercase letter, one uppercase letter, one digit and one of @$!%*?& must be
present. Both conditions are checked with plain counters and a single scan so the
behaviour does not depend on regex look-ahead support.
"""

from enum import Enum
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email as _validate_email
from pydantic import BaseModel, Field

SPECIAL_CHARACTERS = frozenset("@$!%*?&")
MAX_EMAIL_LENGTH = 100


class PasswordViolation(str, Enum):
    EMPTY = "empty"
    MISSING_LOWERCASE = "missing_lowercase"
    MISSING_UPPERCASE = "missing_uppercase"
    MISSING_DIGIT = "missing_digit"
    MISSING_SPECIAL = "missing_special"
    DISALLOWED_CHARACTER = "disallowed_character"


VIOLATION_MESSAGES = {
    PasswordViolation.EMPTY: "Password must not be empty",
    PasswordViolation.MISSING_LOWERCASE: "Password must contain at least one lowercase letter",
    PasswordViolation.MISSING_UPPERCASE: "Password must contain at least one uppercase letter",
    PasswordViolation.MISSING_DIGIT: "Password must contain at least one number",
    PasswordViolation.MISSING_SPECIAL: "Password must contain at least one special character (@$!%*?&)",
    PasswordViolation.DISALLOWED_CHARACTER: "Password may only contain letters, numbers and @$!%*?&",
}


class ValidationResult(BaseModel):
    ok: bool
    violations: List[PasswordViolation] = Field(default_factory=list)

    def messages(self) -> List[str]:
        return [VIOLATION_MESSAGES[v] for v in self.violations]


class EmailValidationResult(BaseModel):
    ok: bool
    normalized: Optional[str] = None
    reason: Optional[str] = None


def _is_ascii_lower(ch: str) -> bool:
    return "a" <= ch <= "z"


def _is_ascii_upper(ch: str) -> bool:
    return "A" <= ch <= "Z"


def _is_ascii_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


class CredentialValidator:
    """Rule checker for passwords and email addresses. Holds no state."""

    def validate_password(self, candidate: Optional[str]) -> ValidationResult:
        if candidate is None:
            raise ValueError("password candidate is required")

        if candidate == "":
            return ValidationResult(ok=False, violations=[PasswordViolation.EMPTY])

        lower = upper = digit = special = disallowed = 0
        for ch in candidate:
            if _is_ascii_lower(ch):
                lower += 1
            elif _is_ascii_upper(ch):
                upper += 1
            elif _is_ascii_digit(ch):
                digit += 1
            elif ch in SPECIAL_CHARACTERS:
                special += 1
            else:
                disallowed += 1

        violations = []
        if not lower:
            violations.append(PasswordViolation.MISSING_LOWERCASE)
        if not upper:
            violations.append(PasswordViolation.MISSING_UPPERCASE)
        if not digit:
            violations.append(PasswordViolation.MISSING_DIGIT)
        if not special:
            violations.append(PasswordViolation.MISSING_SPECIAL)
        if disallowed:
            violations.append(PasswordViolation.DISALLOWED_CHARACTER)

        return ValidationResult(ok=not violations, violations=violations)

    def validate_email(self, candidate: Optional[str]) -> EmailValidationResult:
        if candidate is None:
            raise ValueError("email candidate is required")

        candidate = candidate.strip()
        if not candidate or len(candidate) > MAX_EMAIL_LENGTH:
            return EmailValidationResult(ok=False, reason="Email must be between 1 and 100 characters")

        try:
            info = _validate_email(candidate, check_deliverability=False)
        except EmailNotValidError as e:
            return EmailValidationResult(ok=False, reason=str(e))

        return EmailValidationResult(ok=True, normalized=info.normalized.lower())


credential_validator = CredentialValidator()
