"""Tests for the AUTH signature."""

import hashlib

from pin_client.signer import compute_signature, current_timestamp


class TestComputeSignature:

    def test_same_inputs_same_signature(self):
        """Signing twice gives the identical string."""
        first = compute_signature("c1", "1000", "s1")
        second = compute_signature("c1", "1000", "s1")
        assert first == second

    def test_is_64_lowercase_hex(self):
        sig = compute_signature("c1", "1000", "s1")
        assert len(sig) == 64
        assert sig == sig.lower()
        int(sig, 16)

    def test_matches_hash_chain(self):
        """sha256(client_id + timestamp + hex(sha256(secret)))."""
        secret_hash = hashlib.sha256(b"s1").hexdigest()
        expected = hashlib.sha256(f"c11000{secret_hash}".encode()).hexdigest()
        assert compute_signature("c1", "1000", "s1") == expected

    def test_each_input_changes_signature(self):
        base = compute_signature("c1", "1000", "s1")
        assert compute_signature("c2", "1000", "s1") != base
        assert compute_signature("c1", "1001", "s1") != base
        assert compute_signature("c1", "1000", "s2") != base


class TestCurrentTimestamp:

    def test_whole_seconds_as_string(self):
        assert current_timestamp(1700000000.987) == "1700000000"

    def test_defaults_to_now(self):
        ts = current_timestamp()
        assert ts.isdigit()
        assert int(ts) > 1600000000
