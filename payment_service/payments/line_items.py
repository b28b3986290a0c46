"""
Assemblage des lignes Checkout (pas de Stripe, pas de DB).
"""
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from .currency import to_minor_units
from .models import CheckoutLineItem, InvoiceLine, Product

# module payment_service.payments.line_items
def assemble_line_items(
    products: Iterable[Product],
    currency_code: str,
    overrides: Optional[Iterable[InvoiceLine]] = None,
) -> Tuple[List[CheckoutLineItem], Decimal]:
    """
    Transforme les produits d'un lot en lignes Stripe + remise agrégée.
    - prix < 0: |prix| ajouté à la remise, aucune ligne émise.
    - prix >= 0: une ligne, unit_amount en unités mineures, quantité = override nommé sinon 1.
    - L'ordre des produits est conservé.
    Retour: (line_items, discount) avec discount >= 0 en unités majeures.
    """
    quantities = {line.name: line.quantity for line in (overrides or [])}
    line_items: List[CheckoutLineItem] = []
    discount = Decimal("0")
    for product in products:
        if product.price < 0:
            discount += abs(product.price)
            continue
        line_items.append(CheckoutLineItem(
            currency=currency_code,
            unit_amount=to_minor_units(product.price),
            name=product.name,
            description=product.description or None,
            quantity=quantities.get(product.name, 1),
        ))
    return line_items, discount
