# shopdesk/models/audit_log.py
from typing import List, Dict, Any, Optional
import time
import threading

from shopdesk.config import settings

audit_log: List[Dict[str, Any]] = []
lock = threading.Lock()


def add_audit_entry(action: str, user: str, details: str, tenant_id: Optional[str] = None):
    entry = {
        "action": action,
        "user": user,
        "tenant_id": tenant_id,
        "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
        "details": details,
    }
    with lock:
        audit_log.append(entry)
        overflow = len(audit_log) - max(1, settings.AUDIT_LOG_LIMIT)
        if overflow > 0:
            del audit_log[:overflow]
    return entry


def get_audit_log(tenant_id: Optional[str] = None) -> List[Dict[str, Any]]:
    with lock:
        if tenant_id is None:
            return list(audit_log)
        return [e for e in audit_log if e.get("tenant_id") == tenant_id]


def clear_audit_log() -> None:
    with lock:
        audit_log.clear()
