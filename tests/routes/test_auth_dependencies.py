import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from medassist.auth import jwt_handler
from medassist.auth.dependencies import get_current_user, require_admin
from medassist.routes.auth_routes import me


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_access_token_round_trip_keeps_subject_and_role() -> None:
    token = jwt_handler.create_access_token('patient@example.com', role='patient')

    payload = jwt_handler.decode_access_token(token)

    assert payload['sub'] == 'patient@example.com'
    assert payload['role'] == 'patient'


def test_get_current_user_resolves_token_subject(db, patient) -> None:
    token = jwt_handler.create_access_token(patient.email)

    user = get_current_user(_credentials(token), db=db)

    assert user.id == patient.id
    assert me(current_user=user)['email'] == 'patient@example.com'


def test_get_current_user_rejects_garbage_token(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(_credentials('not-a-token'), db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid token'


def test_get_current_user_rejects_unknown_user(db) -> None:
    token = jwt_handler.create_access_token('ghost@example.com')

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(_credentials(token), db=db)

    assert exception_info.value.detail == 'User not found'


def test_require_admin_blocks_patients(patient, admin) -> None:
    assert require_admin(current_user=admin) is admin

    with pytest.raises(HTTPException) as exception_info:
        require_admin(current_user=patient)

    assert exception_info.value.status_code == 403
