from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient


def seed_color_form(*, client: TestClient, slug: str = "colors") -> tuple[str, dict[str, object]]:
    """Create a form with a required basic question and an optional Red/Blue choice."""
    owner_id = str(uuid4())
    response = client.post(
        "/forms",
        headers={"X-User-Id": owner_id},
        json={
            "title": "Colors",
            "slug": slug,
            "questions": [
                {"question_text": "Say something", "type": "basic", "required": True},
                {
                    "question_text": "Favourite color",
                    "type": "multiple_choice",
                    "choices": ["Red", "Blue"],
                },
            ],
        },
    )
    assert response.status_code == 201
    return owner_id, response.json()
