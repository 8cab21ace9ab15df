"""
Unit tests for APIKey model.

Tests key generation, verification, permissions, and validation.
"""

from datetime import datetime, timedelta

from portal.models.api_key import (
    KEY_PREFIX,
    APIKey,
    generate_api_key,
    hash_key,
    verify_key_hash,
)


class TestKeyGeneration:
    """Test API key generation."""

    def test_generate_key_has_prefix(self):
        """Generated key should start with ptl_ prefix."""
        key = generate_api_key()
        assert key.startswith("ptl_")
        assert KEY_PREFIX == "ptl_"

    def test_generate_key_default_length(self):
        """Default key length should be ptl_ + 32 chars = 36 total."""
        key = generate_api_key()
        assert len(key) == 36

    def test_generate_key_custom_length(self):
        """Custom length should be respected."""
        key = generate_api_key(length=16)
        assert len(key) == 20  # ptl_ + 16

    def test_generate_key_unique(self):
        """Each generated key should be unique."""
        keys = [generate_api_key() for _ in range(100)]
        assert len(set(keys)) == 100

    def test_generate_key_alphanumeric(self):
        """Key should only contain alphanumeric characters after prefix."""
        key = generate_api_key()
        random_part = key[4:]  # Remove ptl_
        assert random_part.isalnum()


class TestKeyHashing:
    """Test key hashing and verification."""

    def test_hash_key_different_from_input(self):
        """Hash should be different from plaintext."""
        plaintext = "ptl_test_key_123"
        hashed = hash_key(plaintext)
        assert isinstance(hashed, str)
        assert hashed != plaintext

    def test_hash_key_starts_with_bcrypt_prefix(self):
        """bcrypt hash should start with $2b$."""
        hashed = hash_key("test")
        assert hashed.startswith("$2")

    def test_verify_key_hash_correct(self):
        """Correct key should verify successfully."""
        plaintext = "ptl_testkey123"
        hashed = hash_key(plaintext)
        assert verify_key_hash(plaintext, hashed) is True

    def test_verify_key_hash_incorrect(self):
        """Incorrect key should fail verification."""
        hashed = hash_key("ptl_correct")
        assert verify_key_hash("ptl_wrong", hashed) is False


class TestAPIKeyModel:
    """Test APIKey model methods."""

    def test_create_key_returns_tuple(self):
        """create_key should return (APIKey, plaintext) tuple."""
        api_key, plaintext = APIKey.create_key(name="Test Key", permissions=["documents:read"])

        assert isinstance(api_key, APIKey)
        assert isinstance(plaintext, str)

    def test_create_key_stores_prefix(self):
        """Key prefix should be stored (first 12 chars)."""
        api_key, plaintext = APIKey.create_key(name="Test Key", permissions=["documents:read"])

        assert api_key.key_prefix == plaintext[:12]

    def test_create_key_hashes_full_key(self):
        """Full key should be hashed."""
        api_key, plaintext = APIKey.create_key(name="Test Key", permissions=["documents:read"])

        assert api_key.key_hash != plaintext
        assert api_key.key_hash.startswith("$2")

    def test_create_key_with_all_params(self):
        """All parameters should be stored correctly."""
        expires = datetime.utcnow() + timedelta(days=30)

        api_key, _ = APIKey.create_key(
            name="Web portal",
            permissions=["documents:read", "workflows:write"],
            description="Front end",
            rate_limit=100,
            expires_at=expires,
        )

        assert api_key.name == "Web portal"
        assert api_key.permissions == ["documents:read", "workflows:write"]
        assert api_key.description == "Front end"
        assert api_key.rate_limit == 100
        assert api_key.expires_at == expires
        assert api_key.is_active is True
        assert api_key.use_count == 0


class TestAPIKeyVerification:
    """Test APIKey.verify_key method."""

    def test_verify_key_correct(self):
        api_key, plaintext = APIKey.create_key(name="Test", permissions=[])
        assert api_key.verify_key(plaintext) is True

    def test_verify_key_incorrect(self):
        api_key, _ = APIKey.create_key(name="Test", permissions=[])
        assert api_key.verify_key("ptl_wrongkey12345678901234567890") is False


class TestAPIKeyValidity:
    """Test APIKey.is_valid method."""

    def test_is_valid_active_no_expiry(self):
        """Active key without expiry should be valid."""
        api_key, _ = APIKey.create_key(name="Test", permissions=[])
        assert api_key.is_valid() is True

    def test_is_valid_inactive(self):
        """Inactive key should be invalid."""
        api_key, _ = APIKey.create_key(name="Test", permissions=[])
        api_key.is_active = False

        assert api_key.is_valid() is False

    def test_is_valid_expired(self):
        """Expired key should be invalid."""
        api_key, _ = APIKey.create_key(
            name="Test",
            permissions=[],
            expires_at=datetime.utcnow() - timedelta(days=1),
        )

        assert api_key.is_valid() is False

    def test_is_valid_future_expiry(self):
        """Key with future expiry should be valid."""
        api_key, _ = APIKey.create_key(
            name="Test",
            permissions=[],
            expires_at=datetime.utcnow() + timedelta(days=30),
        )

        assert api_key.is_valid() is True


class TestAPIKeyPermissions:
    """Test APIKey.has_permission method."""

    def test_has_permission_exact_match(self):
        api_key, _ = APIKey.create_key(name="Test", permissions=["documents:read"])

        assert api_key.has_permission("documents:read") is True

    def test_has_permission_no_match(self):
        api_key, _ = APIKey.create_key(name="Test", permissions=["documents:read"])

        assert api_key.has_permission("workflows:write") is False

    def test_has_permission_resource_wildcard(self):
        """Resource wildcard should match any action."""
        api_key, _ = APIKey.create_key(name="Test", permissions=["workflows:*"])

        assert api_key.has_permission("workflows:read") is True
        assert api_key.has_permission("workflows:write") is True
        assert api_key.has_permission("documents:read") is False

    def test_has_permission_global_wildcard(self):
        """Global wildcard should match everything."""
        api_key, _ = APIKey.create_key(name="Test", permissions=["*:*"])

        assert api_key.has_permission("documents:read") is True
        assert api_key.has_permission("workflows:write") is True
        assert api_key.has_permission("admin:delete") is True

    def test_has_permission_empty_permissions(self):
        api_key, _ = APIKey.create_key(name="Test", permissions=[])

        assert api_key.has_permission("documents:read") is False

    def test_has_permission_none_permissions(self):
        api_key, _ = APIKey.create_key(name="Test", permissions=[])
        api_key.permissions = None

        assert api_key.has_permission("documents:read") is False


class TestAPIKeyUsageTracking:
    """Test APIKey.record_use method."""

    def test_record_use_updates_last_used(self):
        api_key, _ = APIKey.create_key(name="Test", permissions=[])
        assert api_key.last_used_at is None

        api_key.record_use()

        assert isinstance(api_key.last_used_at, datetime)

    def test_record_use_increments_count(self):
        api_key, _ = APIKey.create_key(name="Test", permissions=[])

        api_key.record_use()
        assert api_key.use_count == 1

        api_key.record_use()
        assert api_key.use_count == 2
