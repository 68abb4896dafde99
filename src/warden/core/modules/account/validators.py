import re

from warden.errors import ValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SPECIAL_CHARACTERS = set("!@#$%^&*()_+-=[]{};':\"\\|,.<>/?")


def validate_email(email: str) -> str:
    """Validate and normalize an email address.

    Raises:
        ValidationError: If the address is malformed
    """
    email = email.strip().lower()
    if not EMAIL_RE.fullmatch(email):
        raise ValidationError("Invalid email format")
    return email


def validate_password(password: str) -> None:
    """Validate password meets requirements.

    Requirements:
    - At least 8 characters, no whitespace
    - At least one lowercase letter, one uppercase letter, one digit and one special character

    Raises:
        ValidationError: If password doesn't meet requirements
    """
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters long")

    if any(char.isspace() for char in password):
        raise ValidationError("Password cannot contain whitespace characters")

    if not (
        any(char.islower() for char in password)
        and any(char.isupper() for char in password)
        and any(char.isdigit() for char in password)
        and any(char in SPECIAL_CHARACTERS for char in password)
    ):
        raise ValidationError("Password must mix upper and lower case letters, digits and special characters")
