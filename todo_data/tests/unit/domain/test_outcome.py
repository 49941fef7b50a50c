import pytest

from todo_data.domain.errors import DataNotFoundError, ErrorKind, NetworkError
from todo_data.domain.outcome import LOADING, Error, Loading, Success


def _identity(value):
    return value


@pytest.mark.parametrize(
    "outcome",
    [
        Success(3),
        Success([1, 2], stale=True),
        Error(ErrorKind.SERVER, "Internal server error"),
        LOADING,
    ],
)
def test_map_identity_returns_equal_outcome(outcome):
    assert outcome.map(_identity) == outcome


def test_map_transforms_success_and_keeps_stale_flag():
    result = Success(2, stale=True).map(lambda value: value * 10)

    assert result == Success(20, stale=True)


def test_map_never_calls_transform_for_error_or_loading():
    calls = []

    def transform(value):
        calls.append(value)
        raise AssertionError("must not run")

    error = Error(ErrorKind.NETWORK, "No internet connection")

    assert error.map(transform) is error
    assert LOADING.map(transform) is LOADING
    assert calls == []


def test_map_error_rewrites_only_error_variant():
    relabel = lambda err: Error(err.kind, f"tasks: {err.message}")  # noqa: E731

    assert Success(1).map_error(relabel) == Success(1)
    assert LOADING.map_error(relabel) is LOADING
    assert Error(ErrorKind.TIMEOUT, "Request timed out").map_error(relabel) == Error(
        ErrorKind.TIMEOUT, "tasks: Request timed out"
    )


def test_map_error_rejects_non_error_result():
    with pytest.raises(TypeError):
        Error(ErrorKind.UNKNOWN, "x").map_error(lambda err: Success(1))


def test_fold_runs_exactly_one_branch():
    seen = []
    on_success = lambda value: seen.append(("success", value)) or "s"  # noqa: E731
    on_error = lambda err: seen.append(("error", err.kind)) or "e"  # noqa: E731

    assert Success(5).fold(on_success, on_error) == "s"
    assert Error(ErrorKind.SERVER, "boom").fold(on_success, on_error) == "e"
    assert LOADING.fold(on_success, on_error) is None
    assert LOADING.fold(on_success, on_error, lambda: "l") == "l"
    assert seen == [("success", 5), ("error", ErrorKind.SERVER)]


def test_projections_never_raise():
    error = Error(ErrorKind.DATA_NOT_FOUND, "Resource not found")

    assert Success("x").get_or_none() == "x"
    assert Success("x").error_or_none() is None
    assert error.get_or_none() is None
    assert error.error_or_none() is error
    assert LOADING.get_or_none() is None
    assert LOADING.error_or_none() is None


def test_variant_predicates_and_side_effect_helpers():
    hits = []

    Success(1).on_success(hits.append).on_error(hits.append)
    Error(ErrorKind.SERVER, "down").on_error(lambda err: hits.append(err.kind))
    LOADING.on_loading(lambda: hits.append("loading"))

    assert hits == [1, ErrorKind.SERVER, "loading"]
    assert Success(1).is_success() and not Success(1).is_error()
    assert isinstance(LOADING, Loading) and LOADING.is_loading()


def test_get_or_raise_raises_classified_exception():
    with pytest.raises(DataNotFoundError) as info:
        Error(ErrorKind.DATA_NOT_FOUND, "Resource not found").get_or_raise()
    assert info.value.message == "Resource not found"

    with pytest.raises(RuntimeError):
        LOADING.get_or_raise()


def test_error_round_trips_app_error():
    exc = NetworkError("Unable to connect to server")
    error = Error.from_exception(exc)

    assert error.kind is ErrorKind.NETWORK
    assert error.to_exception() is exc
    assert error.user_message == "Please check your internet connection and try again"


def test_error_equality_ignores_cause():
    assert Error(ErrorKind.SERVER, "x", cause=ValueError("a")) == Error(ErrorKind.SERVER, "x")


def test_outcomes_are_immutable():
    outcome = Success(1)

    with pytest.raises(AttributeError):
        outcome.value = 2
