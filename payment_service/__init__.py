"""Service de paiement multi-tenant (Stripe) pour factures de commandes."""
