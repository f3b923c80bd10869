"""Validación y canonicalización de números de teléfono.

El número canónico es el E.164 sin `+`: solo dígitos, con código de país.
"""

from __future__ import annotations

import re

import phonenumbers

from core.errors import InvalidNumberError, MissingNumberError

_NON_DIGITS_RE = re.compile(r"[^0-9]")


def canonicalize_number(raw: str | None) -> str:
    """Devuelve el número canónico o lanza un `ValidationError`.

    - `None` o vacío → `MissingNumberError`.
    - Sin dígitos, código de país inexistente o número inválido → `InvalidNumberError`.
    """

    if raw is None or not raw.strip():
        raise MissingNumberError()

    digits = _NON_DIGITS_RE.sub("", raw)
    if not digits:
        raise InvalidNumberError(raw)

    try:
        parsed = phonenumbers.parse(f"+{digits}", None)
    except phonenumbers.NumberParseException as exc:
        raise InvalidNumberError(raw) from exc

    if not phonenumbers.is_valid_number(parsed):
        raise InvalidNumberError(raw)

    e164 = phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
    return e164.removeprefix("+")


def format_pairing_code(code: str, *, group_size: int = 4, separator: str = "-") -> str:
    """`ABCDEFGH` → `ABCD-EFGH`. Los códigos vacíos se devuelven tal cual."""

    if not code:
        return code
    groups = [code[i : i + group_size] for i in range(0, len(code), group_size)]
    return separator.join(groups)


def normalize_user_id(user_id: str | None, *, fallback_number: str) -> str:
    """Quita el sufijo de dispositivo: `123:4@s.whatsapp.net` → `123@s.whatsapp.net`."""

    if not user_id:
        return f"{fallback_number}@s.whatsapp.net"
    user, sep, server = user_id.partition("@")
    user = user.split(":", 1)[0]
    if not sep:
        return f"{user}@s.whatsapp.net"
    return f"{user}@{server}"
