"""Tests for verification code generation."""

import re

import pytest

from transcript_engine.codes.generator import (
    MAX_CODE_LEN,
    MIN_CODE_LEN,
    generate_verification_code,
    is_well_formed,
    normalize_code,
)


class TestGenerateCode:
    def test_minimum_length(self):
        code = generate_verification_code()
        assert len(code) >= 22

    def test_url_safe_alphabet(self):
        for _ in range(50):
            assert re.fullmatch(r"[A-Za-z0-9_-]+", generate_verification_code())

    def test_codes_unique(self):
        codes = {generate_verification_code() for _ in range(2000)}
        assert len(codes) == 2000

    def test_no_shared_prefix(self):
        # Time- or counter-derived codes would share a leading run
        codes = [generate_verification_code() for _ in range(200)]
        prefixes = {c[:6] for c in codes}
        assert len(prefixes) > 190

    def test_more_entropy_gives_longer_code(self):
        assert len(generate_verification_code(32)) >= 43

    def test_rejects_weak_entropy(self):
        with pytest.raises(ValueError):
            generate_verification_code(8)

    def test_generated_codes_are_well_formed(self):
        assert is_well_formed(generate_verification_code())


class TestWellFormed:
    @pytest.mark.parametrize("code", [
        "",
        "not-a-real-code",
        "a" * (MIN_CODE_LEN - 1),
        "a" * (MAX_CODE_LEN + 1),
        "abcdefghijklmnopqrstuvwxyz!",
        "abcdefghijk lmnopqrstuvwxyz",
        "'; DROP TABLE certification_requests; --",
    ])
    def test_rejects_malformed(self, code):
        assert is_well_formed(code) is False

    def test_accepts_boundary_lengths(self):
        assert is_well_formed("A" * MIN_CODE_LEN)
        assert is_well_formed("A" * MAX_CODE_LEN)


class TestNormalize:
    def test_strips_whitespace(self):
        assert normalize_code("  abc \n") == "abc"

    def test_none_becomes_empty(self):
        assert normalize_code(None) == ""
