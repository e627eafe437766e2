# inventory/routes/transfer.py
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response

from inventory.bootstrap import Inventory, get_inventory
from inventory.transfer import ExportArtifact

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Export/Import"])


def _download(artifact: ExportArtifact) -> Response:
    return Response(
        content=artifact.payload,
        media_type=artifact.content_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )


@router.get("/export")
def export_inventory(inventory: Inventory = Depends(get_inventory)):
    return _download(inventory.transfer.export())


@router.get("/export/json")
def export_inventory_json(inventory: Inventory = Depends(get_inventory)):
    return _download(inventory.transfer.export_json())


@router.post("/import")
def import_inventory(file: UploadFile = File(...), inventory: Inventory = Depends(get_inventory)):
    try:
        payload = file.file.read()
    finally:
        file.file.close()

    if not inventory.transfer.import_artifact(payload):
        raise HTTPException(status_code=400, detail="Import failed")
    logger.info("Imported %s (%d bytes)", file.filename, len(payload))
    return {"imported": True}
