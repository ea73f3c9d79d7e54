"""
Error bodies, trace ids and log redaction
"""

from utils.error_handling import MAX_LOGGED_TEXT, REDACTED, sanitize


NEW_USER = {"name": "David", "rut": "12345678-9", "email": "david@example.com", "birthday": "1992-08-12"}


class TestSanitize:

    def test_sensitive_keys_are_redacted_at_any_depth(self):
        data = {"Authorization": "Bearer x", "body": {"user": {"api_key": "k", "name": "Alice"}}}
        assert sanitize(data) == {"Authorization": REDACTED, "body": {"user": {"api_key": REDACTED, "name": "Alice"}}}

    def test_lists_are_walked(self):
        assert sanitize([{"password": "p"}, "plain"]) == [{"password": REDACTED}, "plain"]

    def test_long_text_is_truncated(self):
        sanitized = sanitize("x" * (MAX_LOGGED_TEXT + 10))
        assert sanitized.startswith("x" * MAX_LOGGED_TEXT)
        assert sanitized.endswith("...[TRUNCATED]")

    def test_other_values_pass_through(self):
        assert sanitize(3) == 3
        assert sanitize(None) is None


class TestErrorResponses:

    def test_conflict_body_carries_request_trace_id(self, client):
        response = client.post("/api/users", json=NEW_USER)
        assert response.status_code == 409

        body = response.json()
        assert body["trace_id"] == response.headers["X-Trace-ID"]
        assert set(body) == {"error", "message", "trace_id", "timestamp"}

    def test_validation_body_lists_fields(self, client):
        response = client.post("/api/users", json={"rut": "1-1"})
        assert response.status_code == 422

        body = response.json()
        assert body["trace_id"] == response.headers["X-Trace-ID"]
        assert body["error_count"] == len(body["detail"])
        fields = {detail["field"] for detail in body["detail"]}
        assert fields == {"body -> name", "body -> birthday"}
