# inventory/routes/stats.py
from fastapi import APIRouter, Depends

from inventory.bootstrap import Inventory, get_inventory
from inventory.schemas.product import StatsOut

router = APIRouter(
    prefix="/stats",
    tags=["Stats"]
)


@router.get("", response_model=StatsOut)
def get_stats(inventory: Inventory = Depends(get_inventory)):
    """
    Totals across the catalog: products, distinct companies, mean retail price
    and stored images. Zeros for an empty catalog; 503 when storage cannot be read.
    """
    return inventory.products.get_stats()
