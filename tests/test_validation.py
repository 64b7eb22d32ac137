import pytest

from inventory.errors import ValidationFailed
from inventory.validation import (
    ValidationResult, validate_customer, validate_email, validate_length, validate_multiple,
    validate_phone, validate_positive_number, validate_required,
)


class TestEmail:
    def test_valid(self):
        assert validate_email("ayse@example.com").is_valid

    def test_invalid(self):
        result = validate_email("not-an-email")
        assert not result.is_valid
        assert result.errors == ["Invalid email format"]

    def test_optional_blank_is_valid(self):
        assert validate_email("  ").is_valid
        assert validate_email(None).is_valid

    def test_required_blank(self):
        assert validate_email("", required=True).errors == ["Email is required"]


class TestPhone:
    @pytest.mark.parametrize("phone", ["5321234567", "05321234567", "+905321234567", "0532 123 45 67"])
    def test_turkish_mobile_formats(self, phone):
        assert validate_phone(phone).is_valid

    @pytest.mark.parametrize("phone", ["2121234567", "12345", "+15551234567"])
    def test_rejected(self, phone):
        assert validate_phone(phone).errors == ["Invalid phone number format"]

    def test_required(self):
        assert not validate_phone(None, required=True).is_valid


def test_required():
    assert validate_required("x", "Name").is_valid
    assert validate_required("   ", "Name").errors == ["Name is required"]
    assert not validate_required(None, "Name").is_valid


def test_length():
    assert validate_length("abc", min_length=2, max_length=5).is_valid
    assert not validate_length("a", min_length=2).is_valid
    assert not validate_length("x" * 256).is_valid


def test_positive_number():
    assert validate_positive_number(0, "Price").is_valid
    assert validate_positive_number("12.5", "Price").is_valid
    assert validate_positive_number(-1, "Price").errors == ["Price must be a positive number"]
    assert not validate_positive_number("abc", "Price").is_valid
    assert not validate_positive_number(float("nan"), "Price").is_valid


def test_validate_multiple_merges_errors():
    result = validate_multiple([
        validate_required("", "Name"),
        validate_email("bad"),
        validate_phone("5321234567"),
    ])
    assert not result.is_valid
    assert result.errors == ["Name is required", "Invalid email format"]


def test_validate_customer():
    assert validate_customer("Ayşe Yılmaz", "ayse@example.com", "05321234567").is_valid
    assert not validate_customer("", None, None).is_valid


def test_raise_for_errors():
    ValidationResult().raise_for_errors()
    with pytest.raises(ValidationFailed) as exc_info:
        ValidationResult(is_valid=False, errors=["a", "b"]).raise_for_errors()
    assert exc_info.value.errors == ["a", "b"]
    assert str(exc_info.value) == "a; b"
