from typing import Annotated, List

from pydantic import AliasChoices, BeforeValidator, Field

from .document import DocumentModel, Number, OptionalId, OptionalText, Text, to_item_list


class POLineItem(DocumentModel):
    """A single line on a Purchase Order."""
    item_name: Text = ""
    item_description: Text = Field(
        default="", validation_alias=AliasChoices("item_description", "description")
    )
    unit: Text = ""
    quantity: Number = Field(default=0.0, validation_alias=AliasChoices("quantity", "qty"))
    unit_cost: Number = 0.0

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_cost


class PurchaseOrderRequest(DocumentModel):
    """
    Purchase Order as posted by the front end.

    po_id accepts either ``id`` or ``po_id``; the supplier accepts either
    ``supplier_name`` or ``supplier``.  total_amount is advisory only and
    is replaced by the server-side sum of quantity * unit_cost.
    """
    po_id: OptionalId = Field(default=None, validation_alias=AliasChoices("id", "po_id"))
    po_no: Text = ""
    supplier_name: Text = Field(
        default="", validation_alias=AliasChoices("supplier_name", "supplier")
    )
    po_date: OptionalText = None            # YYYY-MM-DD after validation

    ref_no: Text = ""
    supplier_address: Text = ""
    email: Text = ""
    tel: Text = ""
    mode_of_procurement: Text = ""
    pr_no: Text = ""
    pr_date: OptionalText = None
    place_of_delivery: Text = Field(
        default="", validation_alias=AliasChoices("place_of_delivery", "delivery_place")
    )
    delivery_date: OptionalText = None
    payment_term: Text = ""
    delivery_term: Text = ""
    obligation_request_no: Text = ""
    obligation_amount: Number = 0.0

    total_amount: Number = 0.0
    items: Annotated[List[POLineItem], BeforeValidator(to_item_list)] = Field(
        default_factory=list
    )
