import pytest

from stockmate.auth import get_current_user
from stockmate.immutability import register_immutability_listeners
from stockmate.main import app
from stockmate.models import User

register_immutability_listeners()


@pytest.fixture(autouse=True)
def override_auth(request):
    if request.node.get_closest_marker("real_auth"):
        yield
        return

    app.dependency_overrides[get_current_user] = lambda: User(
        id=1,
        email="admin@stockmate.local",
        full_name="Test Admin",
        password_hash="x",
        is_admin=True,
        is_active=True,
    )
    yield
    app.dependency_overrides.pop(get_current_user, None)
