"""
Modèles de la feature 'payments' (pydantic v2).
- Invoice / Product: lignes des stores validées à la frontière (repository).
- CheckoutLineItem: ligne Stripe dérivée (non persistée).
- PaymentIntentRequest: corps de POST /api/payments (camelCase accepté, comme le service appelant).
- Événements webhook: variante taguée par 'kind' (succeeded / failed / other).
"""
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InvoiceStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    failed = "failed"


def _as_str(v: Any) -> Any:
    # ids Postgres: int, uuid ou str selon la table
    return str(v) if v is not None and not isinstance(v, str) else v


def _as_decimal(v: Any) -> Any:
    # numeric PostgREST: float ou str; passer par str évite le bruit binaire des floats
    return Decimal(str(v)) if isinstance(v, float) else v


class InvoiceLine(BaseModel):
    name: str
    quantity: int = Field(default=1, ge=1)


class Invoice(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    tenant_id: str = Field(alias="company_id")
    currency: str = ""
    amount: Decimal = Decimal("0")
    order_batch_id: Optional[str] = None
    intent_reference: Optional[str] = Field(default=None, alias="payment_intent_id")
    status: InvoiceStatus = InvoiceStatus.pending
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None
    lines: List[InvoiceLine] = Field(default_factory=list)

    @field_validator("id", "tenant_id", "order_batch_id", mode="before")
    @classmethod
    def _ids_as_str(cls, v):
        return _as_str(v)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_decimal(cls, v):
        return _as_decimal(v)

    @field_validator("lines", mode="before")
    @classmethod
    def _lines_default(cls, v):
        return v or []


class Product(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: Optional[str] = None
    price: Decimal

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        return _as_str(v)

    @field_validator("price", mode="before")
    @classmethod
    def _price_decimal(cls, v):
        return _as_decimal(v)


class CheckoutLineItem(BaseModel):
    currency: str
    unit_amount: int
    name: str
    description: Optional[str] = None
    quantity: int = 1

    def to_stripe(self) -> Dict[str, Any]:
        """Format 'price_data' attendu par stripe.checkout.Session.create."""
        product_data: Dict[str, Any] = {"name": self.name}
        if self.description:
            product_data["description"] = self.description
        return {
            "price_data": {
                "currency": self.currency,
                "product_data": product_data,
                "unit_amount": self.unit_amount,
            },
            "quantity": self.quantity,
        }


class PaymentIntentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    invoice_id: str = Field(alias="invoiceId")
    # Montant en unités mineures (pence/cents), transmis tel quel à Stripe
    amount: int = Field(gt=0)
    currency: str = Field(min_length=1)
    success_url: str = Field(alias="successUrl", min_length=1)
    cancel_url: str = Field(alias="cancelUrl", min_length=1)
    tenant_id: str = Field(alias="companyId")

    @field_validator("invoice_id", "tenant_id", mode="before")
    @classmethod
    def _ids_as_str(cls, v):
        return _as_str(v)


# --- Événements Stripe (webhook) ---

class IntentPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    metadata: Dict[str, str] = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_default(cls, v):
        return {str(k): str(val) for k, val in (v or {}).items() if val is not None}


class IntentSucceeded(BaseModel):
    kind: Literal["intent_succeeded"] = "intent_succeeded"
    event_id: str = ""
    intent: IntentPayload


class IntentFailed(BaseModel):
    kind: Literal["intent_failed"] = "intent_failed"
    event_id: str = ""
    intent: IntentPayload


class OtherEvent(BaseModel):
    kind: Literal["other"] = "other"
    event_id: str = ""
    event_type: str = ""


PaymentEvent = Annotated[
    Union[IntentSucceeded, IntentFailed, OtherEvent],
    Field(discriminator="kind"),
]
