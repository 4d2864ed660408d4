import pytest

from shopdesk.models.audit_log import clear_audit_log


@pytest.fixture(autouse=True)
def _fresh_audit_log():
    clear_audit_log()
    yield
    clear_audit_log()
