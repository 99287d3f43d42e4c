"""
Tests for actor attribution and operation logging.
"""

import logging
import threading

import pytest

from cosmic_access_core.config import AppConfig, FeatureFlags, LoggingConfig, set_config
from cosmic_access_core.context.actor_context import ActorContext, actor_context
from cosmic_access_core.context.operation_context import (
    OperationContext,
    OperationHandler,
    operation,
)
from cosmic_access_core.exceptions import (
    BaseError,
    ErrorCode,
    ValidationError,
    get_correlation_id,
    set_correlation_id,
)


@pytest.fixture
def debug_logging(caplog):
    set_config(AppConfig(logging=LoggingConfig(level="DEBUG")))
    caplog.set_level(logging.DEBUG, logger="cosmic_access")
    return caplog


class Vault:
    """Small service used to exercise the operation decorator."""

    @operation(redact=("secret",))
    def open(self, label, secret):
        return f"opened {label}"

    @operation(name="vault.fail")
    def fail(self):
        raise BaseError("Vault jammed", error_code=ErrorCode.CONFLICT, status_code=409)

    @operation
    def crash(self):
        raise RuntimeError("unexpected")


class TestActorContext:
    """Test ActorContext functionality."""

    def test_set_and_get(self):
        assert ActorContext.get_current_actor_id() is None
        ActorContext.set_current_actor("admin-1")
        assert ActorContext.get_current_actor_id() == "admin-1"

        ActorContext.clear_current_actor()
        assert ActorContext.get_current_actor_id() is None

    @pytest.mark.parametrize("invalid_actor", ["", "   ", None, 42])
    def test_invalid_actor(self, invalid_actor):
        with pytest.raises(ValidationError) as exc_info:
            ActorContext.set_current_actor(invalid_actor)

        assert exc_info.value.error_code == ErrorCode.MISSING_REQUIRED

    def test_resolve_prefers_explicit_actor(self):
        with actor_context("admin-1"):
            assert ActorContext.resolve() == "admin-1"
            assert ActorContext.resolve("admin-2") == "admin-2"
        assert ActorContext.resolve() is None

    def test_nested_context_restores_previous(self):
        with actor_context("outer"):
            with actor_context("inner"):
                assert ActorContext.get_current_actor_id() == "inner"
            assert ActorContext.get_current_actor_id() == "outer"
        assert ActorContext.get_current_actor_id() is None

    def test_restored_after_exception(self):
        with pytest.raises(RuntimeError):
            with actor_context("admin-1"):
                raise RuntimeError("boom")
        assert ActorContext.get_current_actor_id() is None

    def test_thread_isolation(self):
        results = {}

        def worker(actor_id):
            with actor_context(actor_id):
                results[actor_id] = ActorContext.get_current_actor_id()

        threads = [threading.Thread(target=worker, args=(f"actor-{i}",)) for i in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results == {f"actor-{i}": f"actor-{i}" for i in range(3)}


class TestOperationContext:
    """Test OperationContext bookkeeping."""

    def test_generates_correlation_id(self):
        ctx = OperationContext("token.verify")

        assert ctx.correlation_id
        assert get_correlation_id() == ctx.correlation_id
        assert ctx.context["operation_id"] == ctx.operation_id

    def test_inherits_existing_correlation_id(self):
        set_correlation_id("request-123")
        assert OperationContext("token.verify").correlation_id == "request-123"

    def test_metrics_and_duration(self):
        ctx = OperationContext("token.purge")
        ctx.add_metric("deleted_count", 3)
        ctx.add_context(cutoff="2024-01-01")

        assert ctx.metrics == {"deleted_count": 3}
        assert ctx.context["cutoff"] == "2024-01-01"
        assert ctx.duration_ms >= 0


class TestOperationHandler:
    """Test ENTER/EXIT logging and error enrichment."""

    def test_enter_and_exit(self, debug_logging):
        with OperationHandler().operation("token.list"):
            pass

        assert "ENTER: token.list" in debug_logging.text
        assert "EXIT: token.list" in debug_logging.text

    def test_actor_is_attached(self, debug_logging):
        with actor_context("admin-1"):
            with OperationHandler().operation("token.revoke"):
                pass

        assert "actor_id=admin-1" in debug_logging.text

    def test_base_error_is_enriched(self, debug_logging):
        with pytest.raises(BaseError) as exc_info:
            Vault().fail()

        assert exc_info.value.context["operation_name"] == "vault.fail"
        assert "operation_id" in exc_info.value.context
        assert "ERROR: vault.fail" in debug_logging.text


class TestOperationDecorator:
    """Test the @operation decorator."""

    def test_returns_result(self, debug_logging):
        assert Vault().open("front", "hunter2") == "opened front"

    def test_default_name(self, debug_logging):
        Vault().open("front", "hunter2")
        assert "ENTER: test_context.Vault.open" in debug_logging.text

    def test_redacted_arguments_never_logged(self, debug_logging):
        Vault().open("front", secret="hunter2")

        assert "hunter2" not in debug_logging.text
        assert "'secret': '***'" in debug_logging.text
        assert "'label': 'front'" in debug_logging.text

    def test_unexpected_errors_propagate(self, debug_logging):
        with pytest.raises(RuntimeError):
            Vault().crash()
        assert "ERROR: test_context.Vault.crash -> RuntimeError" in debug_logging.text

    def test_disabled_operation_logging(self, caplog):
        set_config(AppConfig(features=FeatureFlags(enable_operation_logging=False)))
        caplog.set_level(logging.DEBUG, logger="cosmic_access")

        assert Vault().open("front", "hunter2") == "opened front"
        assert "ENTER:" not in caplog.text
