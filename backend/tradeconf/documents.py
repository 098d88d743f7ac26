
from datetime import datetime, timezone
from typing import Literal
from .models import Trade, DocumentInfo, DocumentStatus, DOCUMENT_TYPES

Bucket = Literal["complete", "pending", "missing"]

# per document: submitted, client_signed, bank_signed, maker, checker, qa, sent_to_client, signature
_CONFIRMED = (
    (True, True,  True, "Approved", "Approved", "Approved", True,  "Double"),
    (True, True,  True, "Approved", "Approved", "Approved", True,  "Single"),
    (True, True,  True, "Approved", "Approved", "Approved", True,  "Single"),
    (True, False, True, "Approved", "Approved", "Approved", False, "Single"),
    (True, False, True, "Approved", "Approved", "Approved", False, "Single"),
    (True, False, True, "Approved", "Approved", "Approved", False, "Single"),
)
_PENDING = (
    (True,  False, True,  "Approved", "Approved", "In Review", False, "Double"),
    (True,  False, True,  "Approved", "Reviewed", "Pending",   False, "Single"),
    (True,  True,  True,  "Approved", "Approved", "Approved",  True,  "Single"),
    (True,  False, True,  "Created",  "Pending",  "Pending",   False, "Single"),
    (False, False, False, "Pending",  "Pending",  "Pending",   False, "Single"),
    (False, False, False, "Pending",  "Pending",  "Pending",   False, "Single"),
)
_BROKEN = (
    (True,  False, False, "Created",  "Reviewed", "Rejected", False, "Double"),
    (False, False, False, "Pending",  "Pending",  "Pending",  False, "Single"),
    (True,  True,  True,  "Approved", "Approved", "Approved", True,  "Single"),
    (False, False, False, "Pending",  "Pending",  "Pending",  False, "Single"),
    (False, False, False, "Pending",  "Pending",  "Pending",  False, "Single"),
    (False, False, False, "Pending",  "Pending",  "Pending",  False, "Single"),
)
_BLANK = ((False, False, False, "Pending", "Pending", "Pending", False, "Single"),) * 6

TEMPLATES = {
    "Confirmed": _CONFIRMED,
    "Settled": _CONFIRMED,
    "Pending": _PENDING,
    "Failed": _BROKEN,
    "Disputed": _BROKEN,
}


def _info(trade_id: str, row: tuple, now: datetime) -> DocumentInfo:
    submitted, client_signed, bank_signed, maker, checker, qa, sent, sig = row
    return DocumentInfo(
        submitted=submitted,
        client_signed=client_signed,
        bank_signed=bank_signed,
        timestamp=now if submitted else None,
        document_url=f"/documents/{trade_id}" if submitted else None,
        version=1,
        maker_status=maker,
        checker_status=checker,
        qa_status=qa,
        sent_to_client=sent,
        signature_type=sig,
    )


def generate_document_status(trade: Trade) -> DocumentStatus:
    template = TEMPLATES.get(trade.confirmation_status, _BLANK)
    now = datetime.now(timezone.utc)
    return DocumentStatus(**{
        doc: _info(trade.trade_id, row, now) for doc, row in zip(DOCUMENT_TYPES, template)
    })


def completeness_bucket(status: DocumentStatus) -> Bucket:
    done = sum(1 for d in status.documents() if d.is_complete)
    if done == len(DOCUMENT_TYPES):
        return "complete"
    if done == 0:
        return "missing"
    return "pending"
