import pytest

from services.errors import (
    AuthError,
    Conflict,
    DatabaseError,
    InternalServerError,
    NotFound,
    Unauthorized,
    ValidationFailed,
)


@pytest.mark.parametrize("err, status, code, message", [
    (NotFound("User not found"), 404, "NOT_FOUND", "User not found"),
    (ValidationFailed("Invalid input"), 422, "VALIDATION_ERROR", "Invalid input"),
    (Unauthorized("wrong password"), 401, "UNAUTHORIZED", "Authentication failed"),
    (Conflict("Username is already taken"), 409, "CONFLICT", "Username is already taken"),
    (DatabaseError("Failed to create user session", reason="disk full"), 500,
     "DATABASE_ERROR", "An unexpected error occurred"),
    (InternalServerError("boom"), 500, "INTERNAL_SERVER_ERROR", "An unexpected error occurred"),
])
def test_boundary_mapping(app, err, status, code, message):
    def fail():
        raise err

    app.add_url_rule("/fail", "fail", fail)

    resp = app.test_client().get("/fail")

    assert resp.status_code == status
    assert resp.get_json() == {"error": code, "message": message, "status": status}


def test_reason_stays_out_of_public_message():
    err = Unauthorized("refresh token subject mismatch")

    assert err.public_message == "Authentication failed"
    assert "subject mismatch" in str(err)


def test_only_server_errors_are_logged_as_errors():
    assert DatabaseError("x").should_log
    assert InternalServerError("x").should_log
    assert not Unauthorized("x").should_log
    assert not Conflict("x").should_log


def test_unknown_exception_becomes_internal_error(app):
    def crash():
        raise RuntimeError("kaboom")

    app.add_url_rule("/crash", "crash", crash)

    resp = app.test_client().get("/crash")

    assert resp.status_code == 500
    assert resp.get_json()["error"] == "INTERNAL_ERROR"
    assert "kaboom" not in resp.get_json()["message"]


def test_unknown_route(client):
    resp = client.get("/api/v1/nope")

    assert resp.status_code == 404
    assert resp.get_json()["error"] == "NOT_FOUND"


def test_all_map_from_one_base():
    for cls in (NotFound, ValidationFailed, Unauthorized, Conflict, DatabaseError, InternalServerError):
        assert issubclass(cls, AuthError)
