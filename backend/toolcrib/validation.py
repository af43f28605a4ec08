from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


MAX_CODE_LENGTH = 64


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - aliases: alternate client spellings (camelCase) mapped to column keys
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    aliases: dict[str, str] | None = None


def normalize_code(code: Any) -> str:
    """
    Canonical item code: trimmed and upper-cased.

    Applied at every boundary before lookup or storage.
    """
    if code is None:
        raise ValidationError("code is required", field="code")
    cleaned = str(code).strip().upper()
    if not cleaned:
        raise ValidationError("code cannot be blank", field="code")
    if len(cleaned) > MAX_CODE_LENGTH:
        raise ValidationError(f"code exceeds max length {MAX_CODE_LENGTH}", field="code")
    return cleaned


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        raise ValidationError(f"{col.key} must be an integer", field=col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean", field=col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string", field=col.key)
        return str(value).strip()

    # Default: leave as-is
    return value


def _apply_aliases(payload: dict, aliases: dict[str, str] | None) -> dict:
    if not aliases:
        return dict(payload)
    result = {}
    for key, value in payload.items():
        canonical = aliases.get(key, key)
        if canonical in result and key != canonical:
            # explicit snake_case wins over its alias
            continue
        result[canonical] = value
    return result


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)

    All problems are collected and reported together in `fields`.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payload = _apply_aliases(payload, policy.aliases)

    problems: dict[str, str] = {}

    required = policy.required_on_create or set()
    if not partial:
        for f in sorted(required):
            if f not in payload:
                problems[f] = f"{f} is required"

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            problems[k] = f"Field not allowed: {k}"
        elif k not in cols:
            problems[k] = f"Unknown field: {k}"

    patch: dict = {}

    for k, raw in payload.items():
        if k in problems:
            continue
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                problems[k] = f"{k} cannot be null"
                continue
            patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except ValidationError as exc:
            problems[k] = exc.message
            continue

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and isinstance(val, str) and val == "":
            if not col.nullable:
                problems[k] = f"{k} cannot be blank"
                continue
            val = None

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                problems[k] = f"{k} exceeds max length {col.type.length}"
                continue

        patch[k] = val

    if problems:
        first = next(iter(problems.values()))
        message = first if len(problems) == 1 else f"Invalid fields: {', '.join(sorted(problems))}"
        raise ValidationError(message, fields=problems)

    return patch


def enforce_rules_item(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "code" in patch and patch["code"] is not None:
        patch["code"] = normalize_code(patch["code"])
