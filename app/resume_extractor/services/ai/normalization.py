"""
Normalization of LLM output into the canonical ResumeData field order.
"""

from typing import Any

PROFILE_FIELD = "profile"

COLLECTION_FIELDS = (
    "workExperiences",
    "educations",
    "skills",
    "licenses",
    "languages",
    "achievements",
    "publications",
    "honors",
)

CANONICAL_FIELD_ORDER = (PROFILE_FIELD, *COLLECTION_FIELDS)


def _as_list(value: Any) -> list[Any]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def normalize_resume_data(data: dict[str, Any] | None) -> dict[str, Any]:
    """
    Reorder a parsed ResumeData object into canonical field order.

    ``profile`` comes first, followed by the eight collections. A missing
    or null collection becomes an empty list and a lone object is wrapped
    in a list. Keys outside the canonical set are dropped.

    The transform is idempotent: normalizing its own output yields an
    equal object.

    Args:
        data: Parsed JSON object from the LLM (may be empty or partial).

    Returns:
        A new dict with exactly the nine canonical keys.
    """
    data = data or {}
    normalized: dict[str, Any] = {PROFILE_FIELD: data.get(PROFILE_FIELD)}
    for field in COLLECTION_FIELDS:
        normalized[field] = _as_list(data.get(field))
    return normalized
