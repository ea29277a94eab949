from __future__ import annotations

import re
import secrets
import time
import uuid
from datetime import datetime
from typing import Optional

from clubhub.core.clock import utcnow

RECEIPT_NUMBER_RE = re.compile(r"^REC-\d{8}-[A-Z0-9]{6}$")
TRANSACTION_ID_RE = re.compile(r"^TXN-\d+-[0-9A-F]{8}$")


def generate_receipt_number(now: Optional[datetime] = None) -> str:
    """REC-YYYYMMDD-XXXXXX, date in UTC."""
    now = now or utcnow()
    suffix = uuid.uuid4().hex[:6].upper()
    return f"REC-{now:%Y%m%d}-{suffix}"


def generate_transaction_id() -> str:
    return f"TXN-{int(time.time() * 1000)}-{secrets.token_hex(4).upper()}"
