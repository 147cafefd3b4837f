"""
Tests for the TOTP engine: code derivation, window checks, backup codes.
"""

import base64
from datetime import datetime, timezone

import pyotp
import pytest

from restaurant_security.exceptions import ValidationError
from restaurant_security.services import totp

RFC_SECRET = base64.b32encode(b"12345678901234567890").decode()
RFC_SECRET_SHA256 = base64.b32encode(b"12345678901234567890123456789012").decode()

# RFC 4226 appendix D
RFC_HOTP_CODES = ["755224", "287082", "359152", "969429", "338314", "254676", "287922", "162583", "399871", "520489"]


def at_counter(counter: int, offset: int = 15) -> datetime:
    return datetime.fromtimestamp(counter * totp.TIME_STEP_SECONDS + offset, tz=timezone.utc)


class TestCodeGeneration:
    @pytest.mark.parametrize("counter", range(10))
    def test_rfc4226_vectors(self, counter):
        assert totp.generate_code(RFC_SECRET, counter) == RFC_HOTP_CODES[counter]

    def test_rfc6238_sha1_at_59_seconds(self):
        counter = totp.time_counter(datetime.fromtimestamp(59, tz=timezone.utc))
        assert counter == 1
        assert totp.generate_code(RFC_SECRET, counter) == "287082"

    def test_rfc6238_sha256_at_59_seconds(self):
        assert totp.generate_code(RFC_SECRET_SHA256, 1, digest="sha256") == "119246"

    def test_codes_are_zero_padded_six_digits(self):
        for counter in range(50):
            code = totp.generate_code(RFC_SECRET, counter)
            assert len(code) == 6
            assert code.isdigit()

    def test_unsupported_digest_rejected(self):
        with pytest.raises(ValidationError):
            totp.generate_code(RFC_SECRET, 1, digest="md5")


class TestVerifyWindow:
    def test_current_code_verifies(self):
        secret = totp.generate_secret()
        now = datetime.now(timezone.utc)
        code = totp.generate_code(secret, totp.time_counter(now))
        assert totp.verify_code(secret, code, now) is True

    def test_accepts_codes_from_a_standard_authenticator(self):
        secret = totp.generate_secret()
        now = datetime.now(timezone.utc)
        assert totp.verify_code(secret, pyotp.TOTP(secret).at(now), now) is True
        assert totp.verify_code(secret, pyotp.TOTP(secret).at(now, counter_offset=1), now) is True

    @pytest.mark.parametrize("code_counter", [4, 5, 6])
    def test_adjacent_counters_accepted(self, code_counter):
        assert totp.verify_code(RFC_SECRET, RFC_HOTP_CODES[code_counter], at_counter(5)) is True

    @pytest.mark.parametrize("code_counter", [3, 7])
    def test_counters_two_steps_away_rejected(self, code_counter):
        assert totp.verify_code(RFC_SECRET, RFC_HOTP_CODES[code_counter], at_counter(5)) is False

    def test_malformed_codes_rejected(self):
        now = at_counter(5)
        assert totp.verify_code(RFC_SECRET, "25467", now) is False
        assert totp.verify_code(RFC_SECRET, "2546766", now) is False
        assert totp.verify_code(RFC_SECRET, "25467a", now) is False

    def test_window_boundary_inside_same_step(self):
        # First and last second of step 5 both map to counter 5
        assert totp.verify_code(RFC_SECRET, RFC_HOTP_CODES[5], at_counter(5, offset=0), window=0) is True
        assert totp.verify_code(RFC_SECRET, RFC_HOTP_CODES[5], at_counter(5, offset=29), window=0) is True
        assert totp.verify_code(RFC_SECRET, RFC_HOTP_CODES[5], at_counter(6, offset=0), window=0) is False


class TestSecretDecoding:
    def test_generated_secret_shape(self):
        secret = totp.generate_secret()
        assert len(secret) == 32
        assert set(secret) <= set(totp.BASE32_ALPHABET)
        assert len(totp.decode_secret(secret)) == 20

    def test_lenient_decoding_ignores_noise(self):
        noisy = "gezd gnbv-gy3t qojq=gezdgnbvgy3tqojq===="
        assert totp.decode_secret(noisy) == b"12345678901234567890"

    def test_trailing_bits_dropped(self):
        # 52 symbols = 260 bits -> 32 whole bytes
        assert totp.decode_secret(RFC_SECRET_SHA256.rstrip("=")) == b"12345678901234567890123456789012"

    @pytest.mark.parametrize("secret", ["", "====", "A", "1890!"])
    def test_zero_byte_secret_rejected(self, secret):
        with pytest.raises(ValidationError):
            totp.decode_secret(secret)


class TestBackupCodes:
    def test_codes_are_unique_and_well_formed(self):
        codes = totp.generate_backup_codes(10, 8)
        assert len(codes) == 10
        assert len(set(codes)) == 10
        for code in codes:
            assert len(code) == 8
            assert set(code) <= set(totp.BACKUP_CODE_ALPHABET)

    def test_hash_is_normalised(self):
        assert totp.hash_backup_code("abcd-efgh") == totp.hash_backup_code("ABCDEFGH")
        assert totp.hash_backup_code("ABCDEFGH") != totp.hash_backup_code("ABCDEFGJ")

    def test_format_checks(self):
        assert totp.is_totp_format("123456")
        assert not totp.is_totp_format("12345")
        assert totp.is_backup_code_format("abcd-efgh")
        assert not totp.is_backup_code_format("ABCDEFG")
        assert not totp.is_backup_code_format("123456")


class TestProvisioning:
    def test_provisioning_uri(self):
        uri = totp.provisioning_uri(RFC_SECRET, "owner@example.com", "RestaurantApp")
        assert uri.startswith("otpauth://totp/RestaurantApp:owner%40example.com?")
        assert f"secret={RFC_SECRET}" in uri
        assert "issuer=RestaurantApp" in uri

    def test_provisioning_uri_sha256(self):
        uri = totp.provisioning_uri(RFC_SECRET, "owner@example.com", "RestaurantApp", digest="sha256")
        assert "algorithm=SHA256" in uri

    def test_qr_payload(self):
        payload = totp.generate_qr_payload(RFC_SECRET, "owner@example.com", "RestaurantApp")
        assert payload["uri"].startswith("otpauth://totp/")
        assert payload["image"].startswith("data:image/png;base64,")
