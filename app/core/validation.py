"""
Input Validation Utilities

Provides validation for user inputs including:
- Phone number validation (Nigerian format)
- Meter / account / smart card numbers for bill payments
- Text sanitization for injection prevention
"""
import re
from decimal import Decimal, InvalidOperation


class ValidationPatterns:
    """Regex patterns for validation"""

    # Nigerian mobile numbers: 080XXXXXXXX or +234-80X-XXX-XXXX
    PHONE_NIGERIA = re.compile(
        r"^(?:"
        r"(?:\+234|234)[789][01]\d{8}|"  # +234 / 234 format
        r"0[789][01]\d{8}"  # local 11-digit format
        r")$"
    )

    # Names - letters, spaces and common punctuation
    NAME = re.compile(r"^[^\W\d_]+(?:[\s\-\'\.]+[^\W\d_]+)*\.?$")

    # Prepaid / postpaid meter numbers are 11 or 13 digits
    METER_NUMBER = re.compile(r"^\d{11}(?:\d{2})?$")

    # Customer account / smart card / IUC numbers
    ACCOUNT_NUMBER = re.compile(r"^[A-Za-z0-9\-]{6,20}$")

    EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

    # Script injection patterns
    XSS_PATTERNS = [
        re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL),
        re.compile(r"javascript:", re.IGNORECASE),
        # Event handlers must start at word boundary (onclick=, onload=, etc.)
        re.compile(r"\bon\w+=", re.IGNORECASE),
        re.compile(r"<iframe", re.IGNORECASE),
        re.compile(r"<object", re.IGNORECASE),
        re.compile(r"<embed", re.IGNORECASE),
    ]


class PhoneNumberValidator:
    """Phone number validation and normalization"""

    @staticmethod
    def validate(phone: str) -> bool:
        """
        Validate phone number format.

        Returns:
            True if valid, False otherwise
        """
        if not phone:
            return False

        # Remove spaces and dashes for validation
        cleaned = re.sub(r"[\s\-]", "", phone)

        return bool(ValidationPatterns.PHONE_NIGERIA.match(cleaned))

    @staticmethod
    def normalize(phone: str) -> str:
        """
        Normalize a Nigerian number to the local 11-digit format
        (e.g. +2348012345678 -> 08012345678), which is what providers
        expect for airtime and data top-ups.
        """
        cleaned = re.sub(r"[^\d+]", "", phone)

        if cleaned.startswith("+234"):
            cleaned = "0" + cleaned[4:]
        elif cleaned.startswith("234") and len(cleaned) == 13:
            cleaned = "0" + cleaned[3:]

        return cleaned

    @staticmethod
    def mask(phone: str) -> str:
        """Mask phone number for logging (e.g. 0801234****)"""
        if len(phone) < 4:
            return "****"
        return phone[:-4] + "****"


class BillAccountValidator:
    """Meter and account number checks for bill payments"""

    @staticmethod
    def validate_meter_number(value: str) -> tuple[bool, str | None]:
        if not value:
            return False, "Meter number is required"
        cleaned = re.sub(r"[\s\-]", "", value)
        if not ValidationPatterns.METER_NUMBER.match(cleaned):
            return False, "Meter number must be 11 or 13 digits"
        return True, None

    @staticmethod
    def validate_account_number(value: str) -> tuple[bool, str | None]:
        if not value:
            return False, "Account number is required"
        if not ValidationPatterns.ACCOUNT_NUMBER.match(value.strip()):
            return False, "Account number must be 6-20 letters or digits"
        return True, None


class TextSanitizer:
    """Text sanitization for security"""

    @staticmethod
    def sanitize(text: str, max_length: int = 1000) -> str:
        """
        Sanitize text input for safe storage.

        Note: This does NOT HTML escape. It only:
        - Trims whitespace
        - Enforces max length
        - Removes null bytes
        - Collapses repeated spaces
        """
        if not text:
            return ""

        sanitized = text.strip()[:max_length]
        sanitized = sanitized.replace("\x00", "")
        sanitized = re.sub(r" +", " ", sanitized)

        return sanitized

    @staticmethod
    def check_for_injection(text: str) -> tuple[bool, str | None]:
        """
        Check text for script injection.

        Returns:
            Tuple of (is_safe, detected_pattern)
        """
        if not text:
            return True, None

        for pattern in ValidationPatterns.XSS_PATTERNS:
            if pattern.search(text):
                return False, "XSS pattern detected"

        return True, None


class NameValidator:
    """Name validation utilities"""

    MIN_LENGTH = 2
    MAX_LENGTH = 100

    @staticmethod
    def validate(name: str) -> tuple[bool, str | None]:
        """
        Validate name format.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not name:
            return False, "Name is required"

        name = name.strip()

        if len(name) < NameValidator.MIN_LENGTH:
            return False, f"Name too short (minimum {NameValidator.MIN_LENGTH} characters)"

        if len(name) > NameValidator.MAX_LENGTH:
            return False, f"Name too long (maximum {NameValidator.MAX_LENGTH} characters)"

        if not ValidationPatterns.NAME.match(name):
            return False, "Name contains invalid characters"

        return True, None


class AmountValidator:
    """Monetary amount validation"""

    @staticmethod
    def validate(
        amount: Decimal,
        min_value: Decimal = Decimal("0"),
        max_value: Decimal | None = None
    ) -> tuple[bool, str | None]:
        """
        Validate monetary amount.

        Args:
            amount: Amount to validate
            min_value: Minimum allowed value
            max_value: Maximum allowed value (None = no upper bound)

        Returns:
            Tuple of (is_valid, error_message)
        """
        try:
            if not amount.is_finite():
                return False, "Amount must be a finite number"
        except (AttributeError, InvalidOperation):
            return False, "Amount must be a number"

        if amount < min_value:
            return False, f"Amount must be at least {min_value}"

        if max_value is not None and amount > max_value:
            return False, f"Amount cannot exceed {max_value}"

        # kobo precision
        try:
            if amount != amount.quantize(Decimal("0.01")):
                return False, "Amount cannot have more than 2 decimal places"
        except InvalidOperation:
            return False, "Amount is too large"

        return True, None


# Pydantic field validators for reuse
def phone_validator(v: str | None) -> str | None:
    """Pydantic field validator for phone numbers; empty stays empty"""
    if v is None or v == "":
        return v
    if not PhoneNumberValidator.validate(v):
        raise ValueError("Invalid phone number format")
    return PhoneNumberValidator.normalize(v)


def name_validator(v: str | None) -> str | None:
    """Pydantic field validator for names"""
    if v is None:
        return None
    is_valid, error = NameValidator.validate(v)
    if not is_valid:
        raise ValueError(error)
    return TextSanitizer.sanitize(v.strip(), max_length=NameValidator.MAX_LENGTH)


def email_validator(v: str | None) -> str | None:
    """Pydantic field validator for emails; lower-cased"""
    if v is None:
        return None
    v = v.strip().lower()
    if not ValidationPatterns.EMAIL.match(v):
        raise ValueError("Invalid email address")
    return v


def sanitized_text_validator(v: str | None, max_length: int = 1000) -> str | None:
    """Pydantic field validator for sanitized text"""
    if v is None:
        return None
    is_safe, pattern = TextSanitizer.check_for_injection(v)
    if not is_safe:
        raise ValueError(f"Invalid input: {pattern}")
    return TextSanitizer.sanitize(v, max_length)
