"""
Conversions devise pures (pas de Stripe, pas de DB).
- symbol_to_code: symbole d'affichage ("£") -> code Stripe ("gbp").
- to_minor_units: montant décimal -> entier en unités mineures (arrondi half-up).
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Union

from payment_service import config
from .errors import UnknownCurrency

POLICY_DEFAULT = "default"
POLICY_FAIL = "fail"

_HUNDRED = Decimal(100)

# module payment_service.payments.currency
class CurrencyCodec:
    """
    Table symbole -> code, injectable.
    - unknown_policy="default": symbole inconnu -> default_code (comportement historique)
    - unknown_policy="fail": symbole inconnu -> UnknownCurrency
    Un code ISO à trois lettres ("GBP", "cad") est accepté tel quel (normalisé en minuscules),
    même absent de la table: la politique ne concerne que les symboles.
    """

    def __init__(
        self,
        symbols: Optional[Dict[str, str]] = None,
        default_code: str = "gbp",
        unknown_policy: str = POLICY_DEFAULT,
    ):
        if unknown_policy not in (POLICY_DEFAULT, POLICY_FAIL):
            raise ValueError(f"unknown_policy invalide: {unknown_policy}")
        self.symbols = {k: v.lower() for k, v in (symbols or {}).items()}
        self.default_code = (default_code or "").lower()
        self.unknown_policy = unknown_policy

    @classmethod
    def from_config(cls) -> "CurrencyCodec":
        return cls(
            symbols=config.CURRENCY_SYMBOLS,
            default_code=config.DEFAULT_CURRENCY_CODE,
            unknown_policy=config.UNKNOWN_CURRENCY_POLICY,
        )

    def symbol_to_code(self, symbol: Optional[str]) -> str:
        raw = (symbol or "").strip()
        if raw in self.symbols:
            return self.symbols[raw]
        # Code ISO 4217 fourni par l'appelant ("CAD", "jpy"): transmis tel quel, en minuscules
        if len(raw) == 3 and raw.isascii() and raw.isalpha():
            return raw.lower()
        if self.unknown_policy == POLICY_FAIL:
            raise UnknownCurrency(f"Devise inconnue: {raw!r}")
        return self.default_code

    @staticmethod
    def to_minor_units(amount: Union[Decimal, int, float, str]) -> int:
        """
        x100 puis arrondi au plus proche, demi vers le haut: 19.99 -> 1999, 0.005 -> 1.
        Les floats passent par str() pour ne pas hériter de leur représentation binaire.
        """
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        return int((value * _HUNDRED).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_minor_units(amount: Union[Decimal, int, float, str]) -> int:
    """Alias module-level de CurrencyCodec.to_minor_units."""
    return CurrencyCodec.to_minor_units(amount)
