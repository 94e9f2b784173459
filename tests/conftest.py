"""
Shared pytest fixtures for the Portfolio Insights test suite.

Provides:
    - app: Flask application (session-scoped, "testing" config)
    - client: Flask test client (function-scoped)
    - wbs_doc / wbs_artifact: builders for WBS documents and artifact records
"""

import pytest

from portfolio_insights import create_app


# ── App fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Builders ─────────────────────────────────────────────────────────────


@pytest.fixture()
def wbs_doc():
    """Build a WBS v1 document from rows."""
    def _make(rows, **kw):
        doc = {"type": "wbs", "version": 1, "rows": rows}
        doc.update(kw)
        return doc
    return _make


@pytest.fixture()
def wbs_artifact(wbs_doc):
    """Build an artifact record wrapping a WBS document."""
    def _make(rows, artifact_id="art-1", project_id="proj-1"):
        return {"id": artifact_id, "project_id": project_id, "content_json": wbs_doc(rows)}
    return _make
