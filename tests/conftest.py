import pytest

from dermascan.core.config import get_settings


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    # Tests patch env vars and build their own Settings; never leak a cached
    # instance across tests.
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
