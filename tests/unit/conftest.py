"""
Unit test configuration.

Settings classes read a .env file by default. Unit tests must see only what
they set through monkeypatch.setenv(), so a developer's local JWT_SECRET or
MONGODB_URI never leaks into the config tests.
"""

import pytest


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})
