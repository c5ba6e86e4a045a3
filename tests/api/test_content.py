from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from academy.services.cache import cache_service
from tests.conftest import Store, add_course, add_user, auth_headers


def test_reorder_modules(client: TestClient, api_store: Store) -> None:
    instructor = add_user(api_store, "instructor")
    course, modules, _ = add_course(api_store, instructor, lessons=2, modules=2)
    new_order = [str(modules[1].id), str(modules[0].id)]

    resp = client.put(
        f"/v1/courses/{course.id}/modules/order",
        json={"ordered_ids": new_order},
        headers=auth_headers(instructor),
    )

    assert resp.status_code == 200
    assert [(m["id"], m["order"]) for m in resp.json()] == [
        (new_order[0], 1),
        (new_order[1], 2),
    ]


def test_reorder_lessons(client: TestClient, api_store: Store) -> None:
    instructor = add_user(api_store, "instructor")
    _, modules, lessons = add_course(api_store, instructor, lessons=3)
    new_order = [str(les.id) for les in reversed(lessons)]

    resp = client.put(
        f"/v1/courses/modules/{modules[0].id}/lessons/order",
        json={"ordered_ids": new_order},
        headers=auth_headers(instructor),
    )

    assert resp.status_code == 200
    assert [les["id"] for les in resp.json()] == new_order


def test_foreign_lesson_is_rejected_and_nothing_moves(
    client: TestClient, api_store: Store
) -> None:
    instructor = add_user(api_store, "instructor")
    _, modules, lessons = add_course(api_store, instructor, title="Mine", lessons=2)
    _, _, foreign = add_course(api_store, instructor, title="Other", lessons=1)

    resp = client.put(
        f"/v1/courses/modules/{modules[0].id}/lessons/order",
        json={"ordered_ids": [str(lessons[1].id), str(foreign[0].id), str(lessons[0].id)]},
        headers=auth_headers(instructor),
    )

    assert resp.status_code == 400
    assert resp.json()["details"] == {"unknown_ids": [str(foreign[0].id)]}
    stored = [api_store.content._lessons[les.id].order for les in lessons]
    assert stored == [1, 2]


def test_reorder_requires_course_instructor(client: TestClient, api_store: Store) -> None:
    owner = add_user(api_store, "instructor")
    other = add_user(api_store, "instructor")
    course, modules, _ = add_course(api_store, owner, lessons=2, modules=2)

    resp = client.put(
        f"/v1/courses/{course.id}/modules/order",
        json={"ordered_ids": [str(m.id) for m in modules]},
        headers=auth_headers(other),
    )

    assert resp.status_code == 403


def test_reorder_unknown_module_is_404(client: TestClient, api_store: Store) -> None:
    admin = add_user(api_store, "admin")
    resp = client.put(
        f"/v1/courses/modules/{uuid4()}/lessons/order",
        json={"ordered_ids": []},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 404


def test_reorder_invalidates_analytics(client: TestClient, api_store: Store) -> None:
    instructor = add_user(api_store, "instructor")
    course, modules, _ = add_course(api_store, instructor, lessons=2, modules=2)
    client.get(
        "/v1/analytics/dropoff",
        params={"course_id": str(course.id)},
        headers=auth_headers(instructor),
    )
    assert cache_service._store  # type: ignore[attr-defined]

    client.put(
        f"/v1/courses/{course.id}/modules/order",
        json={"ordered_ids": [str(modules[1].id), str(modules[0].id)]},
        headers=auth_headers(instructor),
    )

    assert cache_service._store == {}  # type: ignore[attr-defined]
