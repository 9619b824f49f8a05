"""
Product catalog lookups for the Payments service.

The catalog resolves product ids to their current unit price. ``SqlCatalog``
reads the products table of the service database; ``HttpCatalog`` asks the
Catalog service over HTTP.
"""
import os
import logging
from decimal import Decimal
from typing import Dict, Iterable, Optional, Protocol

import httpx
from sqlalchemy.orm import Session

from .. import models
from ..exceptions import CatalogUnavailable

logger = logging.getLogger(__name__)

# Use internal Docker network hostname
CATALOG_SERVICE_URL = os.getenv("CATALOG_SERVICE_URL", "http://catalog:8000")
TIMEOUT = float(os.getenv("SERVICE_TIMEOUT", "5.0"))  # seconds


class CatalogPort(Protocol):
    def get_prices(self, db: Session, product_ids: Iterable[str]) -> Dict[str, Decimal]:
        """Return the unit price of every known product id; unknown ids are left out."""
        ...


class SqlCatalog:
    """Catalog backed by the products table."""

    def get_prices(self, db: Session, product_ids: Iterable[str]) -> Dict[str, Decimal]:
        ids = set(product_ids)
        if not ids:
            return {}
        products = db.query(models.Product).filter(models.Product.id.in_(ids)).all()
        return {product.id: Decimal(str(product.price)) for product in products}


class HttpCatalog:
    """
    Catalog backed by the Catalog service.

    Expects ``GET {base_url}/products?ids=a,b`` to answer with a JSON list of
    ``{"id": ..., "price": ...}`` objects.
    """

    def __init__(self, base_url: str = CATALOG_SERVICE_URL, token: Optional[str] = None,
                 client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.client = client

    def get_prices(self, db: Session, product_ids: Iterable[str]) -> Dict[str, Decimal]:
        """
        Fetch current prices from the Catalog service.

        Raises:
            CatalogUnavailable: if the service cannot be reached or answers with an error
        """
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else None
        try:
            if self.client is not None:
                response = self.client.get(f"{self.base_url}/products", params={"ids": ",".join(ids)}, headers=headers)
            else:
                with httpx.Client(timeout=TIMEOUT) as client:
                    response = client.get(f"{self.base_url}/products", params={"ids": ",".join(ids)}, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Catalog service error: {e}")
            raise CatalogUnavailable(f"Catalog service error: {str(e)}") from e

        return {
            str(product["id"]): Decimal(str(product["price"]))
            for product in response.json()
            if str(product.get("id")) in ids
        }
