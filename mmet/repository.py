"""
Explicit product / session repository passed into the core.

The core only reads products and the session log and appends sessions; it
never holds a global collection of its own.
"""
from typing import Dict, Iterable, List, Optional, Protocol

from mmet.schemas import Product, ProfileDocument, SessionLogEntry, TerpeneEntry


class ProfileRepository(Protocol):
    """Read / append contract the core relies on."""

    def get_product(self, product_id: str) -> Optional[Product]: ...

    def list_products(self) -> List[Product]: ...

    def add_product(self, product: Product) -> Product: ...

    def replace_terpenes(self, product_id: str, terpenes: List[TerpeneEntry]) -> Product: ...

    def append_session(self, entry: SessionLogEntry) -> SessionLogEntry: ...

    def session_log(self) -> List[SessionLogEntry]: ...


class InMemoryProfileRepository:
    """
    Dict-backed repository for one profile.

    Products keep insertion order; the session log is append-only.
    """

    def __init__(
        self,
        products: Optional[Iterable[Product]] = None,
        session_log: Optional[Iterable[SessionLogEntry]] = None,
        profile_name: str = "Default"
    ):
        self.profile_name = profile_name
        self._products: Dict[str, Product] = {}
        self._sessions: List[SessionLogEntry] = []
        for product in products or []:
            self.add_product(product)
        for entry in session_log or []:
            self.append_session(entry)

    @classmethod
    def from_document(cls, doc: ProfileDocument) -> "InMemoryProfileRepository":
        return cls(doc.products, doc.session_log, doc.profile_name)

    def to_document(self) -> ProfileDocument:
        return ProfileDocument(
            profile_name=self.profile_name,
            products=self.list_products(),
            session_log=self.session_log(),
        )

    def get_product(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def list_products(self) -> List[Product]:
        return list(self._products.values())

    def add_product(self, product: Product) -> Product:
        """Store a product; an existing product with the same id is replaced."""
        self._products[product.id] = product
        return product

    def replace_terpenes(self, product_id: str, terpenes: List[TerpeneEntry]) -> Product:
        """
        Manual terpene correction: store a copy with a new (merged) terpene list.

        Raises:
            KeyError: If the product id is unknown
        """
        if product_id not in self._products:
            raise KeyError(f"Unknown product id: {product_id}")
        updated = self._products[product_id].with_terpenes(terpenes)
        self._products[product_id] = updated
        return updated

    def append_session(self, entry: SessionLogEntry) -> SessionLogEntry:
        self._sessions.append(entry)
        return entry

    def session_log(self) -> List[SessionLogEntry]:
        return list(self._sessions)

    def sessions_for(self, product_id: str) -> List[SessionLogEntry]:
        return [s for s in self._sessions if s.product_id == product_id]
