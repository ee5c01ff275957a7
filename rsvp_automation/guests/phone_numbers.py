"""Phone number canonicalisation for guest lookup.

Providers, spreadsheets and guests all write the same number differently
(``+972584003578``, ``0584003578``, ``058-400-3578`` ...). Lookups never try to
pick one true form; they search for every plausible representation instead.
"""

import re
from dataclasses import dataclass
from typing import Protocol

_FORMATTING_CHARS = re.compile(r"[\s\-().]")


class PhoneConfig(Protocol):
    phone_country_code: str
    phone_trunk_prefix: str


@dataclass(frozen=True)
class NumberingScheme:
    country_code: str = "972"
    trunk_prefix: str = "0"
    # Valid lengths of the national number without trunk prefix
    subscriber_lengths: tuple[int, ...] = (8, 9)

    @classmethod
    def from_config(cls, config: PhoneConfig) -> "NumberingScheme":
        return cls(country_code=config.phone_country_code, trunk_prefix=config.phone_trunk_prefix)


DEFAULT_SCHEME = NumberingScheme()


def clean_phone(raw: str) -> str:
    return _FORMATTING_CHARS.sub("", raw or "")


def subscriber_number(cleaned: str, scheme: NumberingScheme = DEFAULT_SCHEME) -> str | None:
    """Return the bare subscriber number, or None if ``cleaned`` doesn't fit the scheme."""
    has_plus = cleaned.startswith("+")
    digits = cleaned[1:] if has_plus else cleaned
    if not digits.isdigit():
        return None

    country_code = scheme.country_code
    trunk = scheme.trunk_prefix
    if has_plus:
        if not digits.startswith(country_code):
            return None
        number = digits[len(country_code):]
    elif digits.startswith(country_code) and len(digits) - len(country_code) in scheme.subscriber_lengths:
        number = digits[len(country_code):]
    elif trunk and digits.startswith(trunk):
        number = digits[len(trunk):]
    else:
        number = digits

    # "+972 05..." is a common typo, the trunk zero does not belong after the country code
    if trunk and number.startswith(trunk) and len(number) - len(trunk) in scheme.subscriber_lengths:
        number = number[len(trunk):]

    if len(number) not in scheme.subscriber_lengths:
        return None
    return number


def phone_variants(raw: str, scheme: NumberingScheme = DEFAULT_SCHEME) -> list[str]:
    """All representations a stored guest number could have for ``raw``.

    The cleaned input always comes first. Numbers outside the scheme come back
    as a single-item list.
    """
    cleaned = clean_phone(raw)
    if not cleaned:
        return []

    number = subscriber_number(cleaned, scheme)
    if number is None:
        return [cleaned]

    candidates = [
        cleaned,
        f"+{scheme.country_code}{number}",
        f"{scheme.country_code}{number}",
        f"{scheme.trunk_prefix}{number}",
        number,
    ]
    return list(dict.fromkeys(candidates))


def to_e164(raw: str, scheme: NumberingScheme = DEFAULT_SCHEME) -> str:
    cleaned = clean_phone(raw)
    number = subscriber_number(cleaned, scheme)
    if number is None:
        return cleaned
    return f"+{scheme.country_code}{number}"
