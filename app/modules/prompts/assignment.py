"""Daily prompt assignment: a pure function of (group, calendar date)."""

from datetime import date, datetime, timezone
from typing import Sequence, Union

from app.modules.prompts.catalog import PROMPT_CATALOG, Prompt

_MASK_32 = 0xFFFFFFFF


def djb2_hash(key: str) -> int:
    """Order-sensitive 32-bit hash: seed 5381, hash = hash * 33 XOR byte per byte."""
    value = 5381
    for byte in key.encode("utf-8"):
        value = ((value * 33) ^ byte) & _MASK_32
    return value


def calendar_date(when: Union[date, datetime]) -> date:
    # Datetimes are bucketed by their UTC calendar date
    if isinstance(when, datetime):
        if when.tzinfo is not None:
            when = when.astimezone(timezone.utc)
        return when.date()
    return when


def prompt_key(group_id: str, when: Union[date, datetime]) -> str:
    return f"{calendar_date(when).isoformat()}:{group_id}"


def get_prompt_for_group_on_date(
    group_id: str,
    when: Union[date, datetime],
    catalog: Sequence[Prompt] = PROMPT_CATALOG
) -> Prompt:
    """Same (group_id, date) always yields the same prompt, in any process."""
    return catalog[djb2_hash(prompt_key(group_id, when)) % len(catalog)]
