"""Tests for shared observability logging."""

import logging
import time

import pytest

from profile_lookup.observability.logging import get_logger, mask_credential


def test_get_logger_formats_utc_timestamps(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    fixed = time.struct_time((2020, 1, 2, 3, 4, 5, 3, 2, 0))

    def fake_gmtime(_: float | None = None) -> time.struct_time:
        return fixed

    monkeypatch.setattr(time, "gmtime", fake_gmtime)

    name = "profile_lookup.test.logging"
    logger = get_logger(name)
    logger.info("Hello")

    captured = capsys.readouterr()
    assert "2020-01-02T03:04:05+0000 INFO profile_lookup.test.logging: Hello" in captured.err


def test_get_logger_is_singleton_per_name() -> None:
    name = "profile_lookup.test.logging.singleton"
    logger = get_logger(name)
    logger_again = get_logger(name)

    assert logger is logger_again
    assert len(logger.handlers) == 1
    assert logger.level == logging.INFO
    assert logger.propagate is False


@pytest.mark.parametrize(
    ("credential", "expected"),
    [
        ("AAAAAAAAAAAAAAAAAAAAAbcdef", "AAAAAAAAAA..."),
        ("short", "short..."),
    ],
)
def test_mask_credential_keeps_only_a_prefix(credential: str, expected: str) -> None:
    assert mask_credential(credential) == expected
