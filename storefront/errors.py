"""
Taxonomie des erreurs métier de la boutique.
- Chaque erreur porte un status_code utilisé par les exception handlers (app_setup).
- Les erreurs de réconciliation de paiement ne remontent jamais telles quelles:
  elles sont converties à la frontière du chemin (client ou webhook).
"""


class StorefrontError(Exception):
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ValidationError(StorefrontError):
    """Champs de checkout manquants/invalides ou panier vide: aucune commande créée."""
    status_code = 400


class NotFoundError(StorefrontError):
    """Commande, produit ou identifiant de corrélation inconnu (ou appartenant à un autre utilisateur)."""
    status_code = 404


class InvalidTransition(StorefrontError):
    """Transition de statut refusée par la machine à états."""
    status_code = 409


class CartConflict(StorefrontError):
    """Écritures concurrentes répétées sur le même panier."""
    status_code = 409


class ConcurrencyConflict(StorefrontError):
    """
    Commande déjà dans l'état terminal visé.
    Traité comme un no-op réussi: l'autre canal a déjà terminé la réconciliation.
    """
    status_code = 409


class SignatureMismatch(StorefrontError):
    """Notification non authentifiée (signature HMAC absente ou invalide)."""
    status_code = 400


class GatewayError(StorefrontError):
    status_code = 502


class GatewayConfigError(GatewayError):
    """Identifiants passerelle manquants: erreur de démarrage."""
    status_code = 500


class PaymentInitError(GatewayError):
    """Création de l'intention de paiement impossible: aucune commande persistée."""
    status_code = 502


class GatewayTimeout(PaymentInitError):
    """La passerelle n'a pas répondu dans le délai configuré (pas de retry)."""
    status_code = 504
