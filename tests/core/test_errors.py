"""Tests for heritage_spine.core.errors module."""

import pytest

from heritage_spine.core.errors import (
    ConfigError,
    ErrorCategory,
    ErrorContext,
    InvalidInputError,
    LookupFailureError,
    MalformedGraphError,
    MissingConfigError,
    PathTraversalError,
    PhaseOrderError,
    PublishError,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_empty_context_serializes_to_nothing(self):
        assert ErrorContext().to_dict() == {}

    def test_to_dict_includes_set_fields_and_metadata(self):
        ctx = ErrorContext(phase="preindex", resource_id="4b1c", metadata={"batch": 3})
        d = ctx.to_dict()
        assert d == {"phase": "preindex", "resource_id": "4b1c", "batch": 3}
        assert "graph_id" not in d


class TestPublishError:
    """Test the base error."""

    def test_default_category_is_internal(self):
        assert PublishError("boom").category == ErrorCategory.INTERNAL

    def test_cause_is_chained(self):
        cause = OSError("disk full")
        err = PublishError("could not write chunk", cause=cause)
        assert err.cause is cause
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "disk full"

    def test_with_context_sets_known_fields_and_metadata(self):
        err = LookupFailureError("not found").with_context(
            resource_id="4b1c", graph_id="076f", attempt=2
        )
        assert err.context.resource_id == "4b1c"
        assert err.context.graph_id == "076f"
        assert err.context.metadata == {"attempt": 2}

    def test_with_context_returns_same_instance(self):
        err = MalformedGraphError("no graph")
        assert err.with_context(path="x.json") is err

    def test_to_dict_names_the_error_type(self):
        d = MalformedGraphError("two graphs").with_context(path="a.json").to_dict()
        assert d["error_type"] == "MalformedGraphError"
        assert d["category"] == "SOURCE"
        assert d["context"] == {"path": "a.json"}


class TestSubclasses:
    """Categories and extra fields of the concrete errors."""

    @pytest.mark.parametrize(
        "error_cls,category",
        [
            (InvalidInputError, ErrorCategory.VALIDATION),
            (MalformedGraphError, ErrorCategory.SOURCE),
            (LookupFailureError, ErrorCategory.SOURCE),
            (ConfigError, ErrorCategory.CONFIG),
            (PhaseOrderError, ErrorCategory.PIPELINE),
        ],
    )
    def test_default_categories(self, error_cls, category):
        assert error_cls("x").category == category

    def test_invalid_input_keeps_value(self):
        err = InvalidInputError("empty slug", value="!!!")
        assert err.value == "!!!"
        assert err.to_dict()["value"] == "'!!!'"

    def test_path_traversal_records_path(self):
        err = PathTraversalError("../etc/passwd", "/srv/out")
        assert err.category == ErrorCategory.STORAGE
        assert err.context.path == "../etc/passwd"
        assert "outside /srv/out" in err.message

    def test_missing_config_is_config_error(self):
        err = MissingConfigError("graphs.json")
        assert isinstance(err, ConfigError)
        assert err.key == "graphs.json"
        assert "graphs.json" in err.message

    def test_everything_is_a_publish_error(self):
        for cls in (InvalidInputError, MalformedGraphError, PhaseOrderError, ConfigError):
            assert issubclass(cls, PublishError)
