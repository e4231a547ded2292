"""Translate raw docker CLI output into structured fetch failures."""

from __future__ import annotations

from pull_essentials.engine.base import FetchErrorReason, FetchFailure

_NO_SPACE_PATTERNS: tuple[str, ...] = (
    "no space left on device",
    "disk quota exceeded",
)
_RATE_LIMIT_PATTERNS: tuple[str, ...] = (
    "toomanyrequests",
    "too many requests",
    "rate limit",
)
_UNAUTHORIZED_PATTERNS: tuple[str, ...] = (
    "unauthorized",
    "authentication required",
    "authentication",
    "authorization",
    "access denied",
    "denied",
)
_NOT_FOUND_PATTERNS: tuple[str, ...] = (
    "not found",
    "does not exist",
    "no such image",
)
_MANIFEST_PATTERNS: tuple[str, ...] = (
    "manifest",
    "digest",
    "no matching manifest",
)
_NETWORK_PATTERNS: tuple[str, ...] = (
    "network",
    "timeout",
    "timed out",
    "connection",
    "tls handshake",
    "i/o timeout",
    "temporary failure in name resolution",
    "unexpected eof",
)

_RULES: tuple[tuple[FetchErrorReason, tuple[str, ...]], ...] = (
    (FetchErrorReason.NO_SPACE, _NO_SPACE_PATTERNS),
    (FetchErrorReason.RATE_LIMITED, _RATE_LIMIT_PATTERNS),
    (FetchErrorReason.UNAUTHORIZED, _UNAUTHORIZED_PATTERNS),
    (FetchErrorReason.NOT_FOUND, _NOT_FOUND_PATTERNS),
    (FetchErrorReason.MANIFEST, _MANIFEST_PATTERNS),
    (FetchErrorReason.NETWORK, _NETWORK_PATTERNS),
)


def parse_pull_failure(*, exit_code: int, output: str) -> FetchFailure:
    """Build a ``FetchFailure`` from a non-zero ``docker pull`` exit."""

    haystack = output.lower()
    for reason, patterns in _RULES:
        pattern = _first_match(haystack, patterns)
        if pattern is not None:
            return FetchFailure(
                reason=reason,
                message=_summarize(output, exit_code),
                exit_code=exit_code,
                matched_pattern=pattern,
            )
    return FetchFailure(
        reason=FetchErrorReason.UNKNOWN,
        message=_summarize(output, exit_code),
        exit_code=exit_code,
    )


def timeout_failure(timeout_seconds: int) -> FetchFailure:
    return FetchFailure(
        reason=FetchErrorReason.TIMEOUT,
        message=f"pull timed out after {timeout_seconds}s",
        exit_code=124,
    )


def _summarize(output: str, exit_code: int) -> str:
    lines = [line.strip() for line in output.strip().splitlines() if line.strip()]
    if not lines:
        return f"docker exited with code {exit_code}"
    return lines[-1][:500]


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
