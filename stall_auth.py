"""Sign-in / sign-up form validation. Accounts live only in the browser session."""

import re

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]{2,}$", re.IGNORECASE)


def validate_email(email: str | None) -> str:
    if not email:
        return "Email is required"
    if not EMAIL_RE.match(email):
        return "Enter a valid email address"
    return ""


def password_issues(password: str | None) -> list[str]:
    pw = password or ""
    issues = []
    if len(pw) < 8:
        issues.append("At least 8 characters")
    if not re.search(r"[A-Za-z]", pw):
        issues.append("At least one letter")
    if not re.search(r"\d", pw):
        issues.append("At least one number")
    return issues


def password_strength(password: str | None) -> str:
    if not password:
        return ""
    n = len(password_issues(password))
    if n == 0:
        return "Strong"
    if n == 1:
        return "Medium"
    return "Weak"


def validate_sign_in(email: str | None, password: str | None) -> dict:
    errors = {}
    if msg := validate_email(email):
        errors["email"] = msg
    if not password:
        errors["password"] = "Password is required"
    return errors


def validate_sign_up(email: str | None, password: str | None, confirm: str | None) -> dict:
    errors = {}
    if msg := validate_email(email):
        errors["email"] = msg
    if not password:
        errors["password"] = "Password is required"
    elif issues := password_issues(password):
        errors["password"] = f"Password must include: {', '.join(issues)}"
    if not confirm:
        errors["confirm"] = "Please confirm your password"
    elif confirm != password:
        errors["confirm"] = "Passwords do not match"
    return errors
