"""Boutique en ligne: panier, commandes (COD / en ligne) et réconciliation des paiements Razorpay."""

__version__ = "0.1.0"
