from __future__ import annotations

import pytest

from quonitor.core.errors import (
    AccountNotFoundError,
    AuthError,
    ConfigError,
    DatabaseError,
    EncryptionError,
    NetworkError,
    ProviderError,
    UnknownProviderError,
    api_error,
)
from quonitor.core.handlers.exceptions import status_for_error

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (AccountNotFoundError("acc_x"), 404),
        (UnknownProviderError("mistral"), 400),
        (ConfigError("bad value"), 400),
        (AuthError("rejected"), 401),
        (ProviderError("down", status_code=503), 502),
        (NetworkError("timeout"), 502),
        (EncryptionError("tag mismatch"), 500),
        (DatabaseError("locked"), 500),
    ],
)
def test_status_for_error(error, status):
    assert status_for_error(error) == status


def test_error_envelope_shape():
    assert AuthError("nope").to_envelope() == {"error": {"code": "auth_error", "message": "nope"}}
    assert api_error("quota_not_found", "missing") == {
        "error": {"code": "quota_not_found", "message": "missing"}
    }
