# inventory/schemas/transfer.py
from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


# Portable JSON export: {"products": [...], "exportDate": "..."}
class ExportDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    products: List[Dict[str, Any]]
    export_date: datetime = Field(alias="exportDate")
