from datetime import timedelta

import pytest

from shared.security import canonical_id, create_access_token, same_identity, verify_access_token


class TestCanonicalId:
    @pytest.mark.parametrize("value, expected", [(7, 7), ("7", 7), (" 42 ", 42), ("007", 7)])
    def test_accepts_positive_ints_and_digit_strings(self, value, expected):
        assert canonical_id(value) == expected

    @pytest.mark.parametrize("value", [None, True, False, 0, -3, "0", "-3", "abc", "1.5", "", 1.0, [1], 2**31, "99999999999999999999", "\u00b9"])
    def test_rejects_everything_else(self, value):
        assert canonical_id(value) is None

    def test_largest_storable_id_is_accepted(self):
        assert canonical_id(2**31 - 1) == 2**31 - 1
        assert canonical_id(str(2**31 - 1)) == 2**31 - 1


class TestSameIdentity:
    def test_token_string_matches_database_int(self):
        assert same_identity(12, "12")

    def test_different_ids(self):
        assert not same_identity(12, 13)

    def test_unparseable_ids_never_match(self):
        assert not same_identity(None, None)
        assert not same_identity("abc", "abc")


class TestAccessTokens:
    def test_roundtrip_keeps_claims(self):
        token = create_access_token({"sub": "5", "role": "admin"}, "secret")

        payload = verify_access_token(token, "secret")

        assert payload["sub"] == "5"
        assert payload["role"] == "admin"

    def test_wrong_secret_is_rejected(self):
        token = create_access_token({"sub": "5"}, "secret")

        assert verify_access_token(token, "other-secret") is None

    def test_expired_token_is_rejected(self):
        token = create_access_token({"sub": "5"}, "secret", expires_delta=timedelta(seconds=-10))

        assert verify_access_token(token, "secret") is None
