from pydantic import BaseModel


class SaveResult(BaseModel):
    """What the writer hands back after a committed header + items write."""
    kind: str                   # "PO" | "PAR"
    doc_id: int                 # surrogate key
    natural_key: str            # po_no / par_no
    total_amount: float         # server-computed, never the client's value
    item_count: int
    updated: bool = False       # False for insert, True for update
    recipient_id: int | None = None
