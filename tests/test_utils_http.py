from __future__ import annotations

import pytest

from proxytheus.utils.http import (
    construct_url,
    is_valid_header_name,
    is_valid_header_value,
    merge_query,
    normalize_base_url,
    validate_http_url,
)


@pytest.mark.parametrize(
    ("base", "segments", "expected"),
    [
        ("http://some.endpoint", ["metrics"], "http://some.endpoint/metrics"),
        (
            "http://some.endpoint",
            ["metrics", "sub", "path"],
            "http://some.endpoint/metrics/sub/path",
        ),
        ("http://some.endpoint/suffix", ["metrics"], "http://some.endpoint/suffix/metrics"),
        (
            "http://some.endpoint/suffix",
            ["metrics", "sub", "path"],
            "http://some.endpoint/suffix/metrics/sub/path",
        ),
    ],
)
def test_construct_url(base: str, segments: list[str], expected: str) -> None:
    assert construct_url(base, segments) == expected


def test_construct_url_trailing_slash_on_base() -> None:
    assert construct_url("http://some.endpoint/suffix/", ["a"]) == "http://some.endpoint/suffix/a"


def test_construct_url_escapes_segments() -> None:
    url = construct_url("http://some.endpoint", ["a b", "c/d", "e?f#g"])
    assert url == "http://some.endpoint/a%20b/c%2Fd/e%3Ff%23g"


def test_construct_url_keeps_base_query() -> None:
    assert construct_url("http://h/x?job=a", ["y"]) == "http://h/x/y?job=a"


def test_merge_query() -> None:
    assert merge_query("http://h/x", "") == "http://h/x"
    assert merge_query("http://h/x", "a=1&a=2") == "http://h/x?a=1&a=2"
    assert merge_query("http://h/x?job=a", "a=1") == "http://h/x?job=a&a=1"


def test_normalize_base_url() -> None:
    assert normalize_base_url(" HTTP://Host:9090/federate/ ") == "http://Host:9090/federate"
    assert normalize_base_url("https://host/") == "https://host"


@pytest.mark.parametrize("value", ["", "ftp://host", "http://", "http://host/#frag"])
def test_normalize_base_url_rejects(value: str) -> None:
    with pytest.raises(ValueError):
        normalize_base_url(value)


def test_validate_http_url() -> None:
    assert validate_http_url(" https://idp/token/ ") == "https://idp/token/"
    with pytest.raises(ValueError):
        validate_http_url("idp/token")


def test_header_validation() -> None:
    assert is_valid_header_name("Authorization")
    assert is_valid_header_name("X-Api-Key")
    assert not is_valid_header_name("")
    assert not is_valid_header_name("Bad Header")
    assert not is_valid_header_name("Bad:Header")

    assert is_valid_header_value("Bearer abc")
    assert is_valid_header_value("")
    assert not is_valid_header_value("a\r\nInjected: 1")
    assert not is_valid_header_value("line1\nline2")
    assert not is_valid_header_value("café")
