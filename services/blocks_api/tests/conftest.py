import sys
from datetime import date
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[3]
for entry in (ROOT, ROOT / "packages" / "py-shared"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

from services.blocks_api.context import RequestContext  # noqa: E402
from services.blocks_api.settings import get_settings  # noqa: E402

TENANT = "tenant-A"
DAY = date(2025, 9, 19)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("COST_API_URL", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def ctx() -> RequestContext:
    return RequestContext(request_id="req-test", tenant_id=TENANT, day=DAY)
