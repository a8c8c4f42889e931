"""
Test that veriai_logging can be imported without circular import and logger works.
"""

from __future__ import annotations


def test_logging_import():
    """Import get_logger from veriai_logging and use the logger."""
    from backend_veriai.veriai_logging import get_logger

    logger = get_logger("test")
    assert logger is not None
    assert hasattr(logger, "info")
    assert hasattr(logger, "warning")
    assert hasattr(logger, "exception")
    logger.info("test_message", key="value")


def test_bind_subject_logger():
    """bind_subject carries subject, and reason and job_id only when given."""
    from structlog.testing import capture_logs

    from backend_veriai.veriai_logging import bind_subject

    with capture_logs() as logs:
        bind_subject("acme/model", reason="rating_submitted", job_id="a1b2").info("test_bound_message")
        bind_subject("acme/model").info("test_plain_message")
    assert logs[0]["subject"] == "acme/model"
    assert logs[0]["reason"] == "rating_submitted"
    assert logs[0]["job_id"] == "a1b2"
    assert "job_id" not in logs[1]
    assert "reason" not in logs[1]


def test_job_context_binds_contextvars():
    """job_context exposes subject and job_id to every logger until the block exits."""
    import structlog

    from backend_veriai.veriai_logging import job_context

    with job_context("acme/model", "a1b2"):
        bound = structlog.contextvars.get_contextvars()
        assert bound["subject"] == "acme/model"
        assert bound["job_id"] == "a1b2"
    assert "job_id" not in structlog.contextvars.get_contextvars()


def test_package_imports_without_cycles():
    """Top-level sub-packages import cleanly in dependency order."""
    import backend_veriai.agent_worker.runtime  # noqa: F401
    import backend_veriai.tools.insights  # noqa: F401
    import backend_veriai.tools.run_evaluation  # noqa: F401
