from exam_booking.deps import get_current_user_id
from exam_booking.routers import availability
from fastapi.routing import APIRoute


def test_availability_router_requires_bearer_token() -> None:
    assert any(dep.dependency == get_current_user_id for dep in availability.router.dependencies)

    for route in availability.router.routes:
        if not isinstance(route, APIRoute):
            continue
        assert any(dep.call == get_current_user_id for dep in route.dependant.dependencies)
