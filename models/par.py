from typing import Annotated, List

from pydantic import AliasChoices, BeforeValidator, Field

from .document import DocumentModel, Number, OptionalId, OptionalText, Text, to_item_list


class PARLineItem(DocumentModel):
    """One property line on a Property Acknowledgement Receipt."""
    quantity: Number = Field(default=0.0, validation_alias=AliasChoices("quantity", "qty"))
    unit: Text = ""
    description: Text = ""
    property_number: Text = ""
    date_acquired: OptionalText = None      # falls back to the receipt date
    amount: Number = 0.0                    # per-unit amount

    @property
    def line_total(self) -> float:
        return self.quantity * self.amount


class PARRequest(DocumentModel):
    """
    Property Acknowledgement Receipt as posted by the front end.

    received_by is the recipient's full name (or an existing user id);
    it is resolved to a users row by find-or-create when the receipt is
    written.
    """
    par_id: OptionalId = None
    par_no: Text = ""
    entity_name: Text = ""
    date_acquired: OptionalText = None
    received_by: Text = ""
    position: Text = ""
    department: Text = ""
    remarks: Text = ""

    total_amount: Number = 0.0
    items: Annotated[List[PARLineItem], BeforeValidator(to_item_list)] = Field(
        default_factory=list
    )
