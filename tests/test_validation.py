"""
Tests for ValidationUtils.
"""

from syro_bot.utils.validation import ValidationUtils


class TestValidationUtils:
    """Tests for the input validators."""

    def test_sanitize_input(self):
        """Test zero-width and control characters are stripped."""
        assert ValidationUtils.sanitize_input("  pi\u200bng\x07 ") == "ping"
        assert ValidationUtils.sanitize_input(None) == ""

    def test_command_name(self):
        """Test command names are normalized and single-token."""
        result = ValidationUtils.validate_command_name("Ping")
        assert result
        assert result.sanitized == "ping"

        assert not ValidationUtils.validate_command_name("two words")
        assert not ValidationUtils.validate_command_name("")
        assert not ValidationUtils.validate_command_name(42)

    def test_prefix(self):
        """Test prefix length and character rules."""
        assert ValidationUtils.validate_prefix("!").sanitized == "!"
        assert not ValidationUtils.validate_prefix("")
        assert not ValidationUtils.validate_prefix("abcdef")
        assert ValidationUtils.validate_prefix("abcdef", max_length=6)
        assert not ValidationUtils.validate_prefix("a b")
        assert not ValidationUtils.validate_prefix("onx=")

    def test_duration(self):
        """Test duration parsing and bounds."""
        assert ValidationUtils.validate_duration("1500").value == 1500
        assert ValidationUtils.validate_duration(0)

        too_short = ValidationUtils.validate_duration(-1)
        assert not too_short
        assert too_short.value == 0

        assert not ValidationUtils.validate_duration(5000, max_ms=1000)
        assert not ValidationUtils.validate_duration("soon")
        assert not ValidationUtils.validate_duration(True)

    def test_duration_must_be_finite(self):
        """Test infinity and NaN are reported, not raised."""
        for value in (float("inf"), float("-inf"), float("nan"), "inf"):
            result = ValidationUtils.validate_duration(value)
            assert not result
            assert result.error == "Duration must be finite"

    def test_string_list(self):
        """Test list-of-strings validation."""
        assert ValidationUtils.validate_string_list(None, "aliases").value == []
        assert ValidationUtils.validate_string_list(["a", "b"], "aliases").value == ["a", "b"]
        assert not ValidationUtils.validate_string_list("a", "aliases")
        assert not ValidationUtils.validate_string_list(["a", ""], "aliases")
        assert not ValidationUtils.validate_string_list(["a", "b"], "aliases", max_length=1)

    def test_split_arguments(self):
        """Test runs of whitespace collapse."""
        assert ValidationUtils.split_arguments("ban  @user\tspam  ") == ["ban", "@user", "spam"]
        assert ValidationUtils.split_arguments("   ") == []
