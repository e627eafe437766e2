# inventory/routes/products.py
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from inventory.bootstrap import Inventory, get_inventory
from inventory.schemas.product import ProductOut

router = APIRouter(tags=["Products"])


# =========================
# PRODUCT LIST / SEARCH
# =========================
@router.get("/products", response_model=List[ProductOut])
def list_products(inventory: Inventory = Depends(get_inventory)):
    return inventory.products.get_all()


@router.get("/products/search", response_model=List[ProductOut])
def search_products(q: str = Query("", max_length=200), inventory: Inventory = Depends(get_inventory)):
    if not q.strip():
        return inventory.products.get_all()
    return inventory.products.search(q.strip())


# =========================
# SINGLE PRODUCT
# =========================
@router.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: int, inventory: Inventory = Depends(get_inventory)):
    product = inventory.products.get_by_id(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.post("/products", response_model=ProductOut, status_code=201)
def add_product(payload: Dict[str, Any] = Body(...), inventory: Inventory = Depends(get_inventory)):
    return inventory.products.add_product(payload)


@router.put("/products/{product_id}", response_model=ProductOut)
def update_product(
    product_id: int, payload: Dict[str, Any] = Body(...), inventory: Inventory = Depends(get_inventory)
):
    product = inventory.products.update_product(product_id, payload)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.delete("/products/{product_id}")
def delete_product(product_id: int, inventory: Inventory = Depends(get_inventory)):
    return {"deleted": inventory.products.delete_product(product_id)}
