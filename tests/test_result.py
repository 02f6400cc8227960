from leadbot.services.result import Result


class TestResultSuccess:
    def test_success_creates_ok_result(self):
        result = Result.success("wamid.1")
        assert result.ok is True
        assert result.value == "wamid.1"
        assert result.error is None

    def test_success_allows_none_value(self):
        assert Result.success(None).ok is True


class TestResultFailure:
    def test_failure_creates_not_ok_result(self):
        result = Result.failure("Graph API down", "api_error")
        assert result.ok is False
        assert result.error == "Graph API down"
        assert result.error_code == "api_error"
        assert result.value is None

    def test_failure_default_code(self):
        assert Result.failure("boom").error_code == "unknown"

    def test_from_exception_keeps_type_name(self):
        result = Result.from_exception(TimeoutError("read timed out"), "transport_error")
        assert result.error == "TimeoutError: read timed out"
        assert result.error_code == "transport_error"


class TestResultUnwrapOr:
    def test_unwrap_or_returns_value_on_success(self):
        assert Result.success("actual").unwrap_or("default") == "actual"

    def test_unwrap_or_returns_default_on_failure(self):
        assert Result.failure("Error", "code").unwrap_or("default") == "default"

    def test_unwrap_or_with_none_value(self):
        assert Result.success(None).unwrap_or("default") is None
