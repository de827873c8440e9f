import pytest

from gallery.roles import SUPPORTED_ROLES, validate_role
from gallery.workers.roles import ROLE_TO_QUEUE, ROLE_TO_STAGE, RUNTIME_WORKER_ROLES


@pytest.mark.unit
@pytest.mark.parametrize("role", SUPPORTED_ROLES)
def test_supported_role_is_accepted(role: str) -> None:
    validated = validate_role(role)
    assert validated.name == role


@pytest.mark.unit
def test_invalid_role_rejected_with_actionable_message() -> None:
    with pytest.raises(ValueError) as exc_info:
        validate_role("worker-unknown")

    message = str(exc_info.value)
    assert "Unsupported role 'worker-unknown'" in message
    assert "Supported roles:" in message
    assert "migrator is external" in message


@pytest.mark.unit
def test_every_runtime_role_maps_to_known_worker_roles() -> None:
    assert set(RUNTIME_WORKER_ROLES) == set(SUPPORTED_ROLES)
    for worker_roles in RUNTIME_WORKER_ROLES.values():
        for worker_role in worker_roles:
            assert worker_role in ROLE_TO_STAGE
            assert worker_role in ROLE_TO_QUEUE
