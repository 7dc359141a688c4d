from __future__ import annotations

from uuid import UUID

import ulid

# ULIDs rendered as UUIDs: valid for uuid columns and ordered by creation time.


def new_form_id() -> UUID:
    return ulid.new().uuid


def new_question_id() -> UUID:
    return ulid.new().uuid


def new_filled_form_id() -> UUID:
    return ulid.new().uuid


def new_answer_id() -> UUID:
    return ulid.new().uuid


def parse_uuid(value: str) -> UUID | None:
    try:
        return UUID(value)
    except ValueError:
        return None
