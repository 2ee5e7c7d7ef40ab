"""Referral code format and completion criteria."""

import pytest

from tipster.referrals.service import CODE_ALPHABET, CompletionProgress, generate_code


class TestGenerateCode:
    def test_format(self):
        code = generate_code()
        assert len(code) == 8
        assert set(code) <= set(CODE_ALPHABET)

    def test_codes_vary(self):
        assert len({generate_code() for _ in range(50)}) > 1


class TestCompletionProgress:
    def test_all_criteria_met(self):
        assert CompletionProgress(account_age_ok=True, quiz_ok=True, predictions=3, packages=1).is_complete

    @pytest.mark.parametrize(
        "overrides",
        [
            {"account_age_ok": False},
            {"quiz_ok": False},
            {"predictions": 2},
            {"packages": 0},
        ],
    )
    def test_any_missing_criterion_blocks(self, overrides):
        fields = {"account_age_ok": True, "quiz_ok": True, "predictions": 5, "packages": 2, **overrides}
        assert not CompletionProgress(**fields).is_complete
