"""
Modèle panier immuable.
- Chaque mutation retourne un nouveau Cart; la persistance remplace la collection entière.
- Invariants: une seule ligne par produit, quantité >= 1.
"""
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class LineItem:
    product_id: str
    quantity: int = 1

    def to_row(self) -> Dict[str, Any]:
        return {"product_id": self.product_id, "quantity": self.quantity}


@dataclass(frozen=True)
class Cart:
    user_id: str
    lines: Tuple[LineItem, ...] = ()
    version: Optional[str] = None
    # False tant que la ligne n'existe pas en base (création paresseuse)
    persisted: bool = False

    @classmethod
    def from_row(cls, user_id: str, row: Optional[Dict[str, Any]]) -> "Cart":
        if not row:
            return cls(user_id=user_id)
        lines: List[LineItem] = []
        seen = set()
        for raw in row.get("products") or []:
            product_id = str(raw.get("product_id") or "").strip()
            try:
                qty = int(raw.get("quantity") or 0)
            except (TypeError, ValueError):
                qty = 0
            if not product_id or product_id in seen or qty < 1:
                continue
            seen.add(product_id)
            lines.append(LineItem(product_id, qty))
        return cls(user_id=user_id, lines=tuple(lines), version=row.get("version"), persisted=True)

    def to_rows(self) -> List[Dict[str, Any]]:
        return [line.to_row() for line in self.lines]

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def count(self) -> int:
        return len(self.lines)

    def product_ids(self) -> List[str]:
        return [line.product_id for line in self.lines]

    def quantity_of(self, product_id: str) -> int:
        for line in self.lines:
            if line.product_id == product_id:
                return line.quantity
        return 0

    def with_added(self, product_id: str) -> "Cart":
        """Incrémente la ligne existante ou ajoute une ligne de quantité 1 en fin de panier."""
        if self.quantity_of(product_id):
            return self.with_quantity_delta(product_id, +1)
        return replace(self, lines=self.lines + (LineItem(product_id, 1),))

    def with_quantity_delta(self, product_id: str, delta: int) -> "Cart":
        """Applique +1/-1; la quantité plancher est 1 (décrémenter à 1 ne supprime pas)."""
        lines = tuple(
            LineItem(line.product_id, max(1, line.quantity + delta)) if line.product_id == product_id else line
            for line in self.lines
        )
        return replace(self, lines=lines)

    def without(self, product_id: str) -> "Cart":
        return replace(self, lines=tuple(line for line in self.lines if line.product_id != product_id))
