from .document import DocumentModel, OptionalText, Text


class InventoryItem(DocumentModel):
    """
    A tracked asset.  item_id is the operator-assigned tag (primary key);
    serial_number, when present, must be unique across items.
    """
    item_id: Text = ""
    item_name: Text = ""
    brand_model: Text = ""
    serial_number: OptionalText = None
    purchase_date: OptionalText = None          # YYYY-MM-DD
    warranty_expiration: OptionalText = None    # YYYY-MM-DD
    assigned_to: Text = ""
    location: Text = ""
    condition: Text = ""
    notes: Text = ""
