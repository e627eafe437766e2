# inventory/routes/images.py
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from inventory.bootstrap import Inventory, get_inventory
from inventory.schemas.image import ImageMeta, ImageOut

router = APIRouter(tags=["Images"])


@router.post("/products/{product_id}/image", response_model=ImageOut, status_code=201)
def upload_image(
    product_id: int,
    file: UploadFile = File(...),
    inventory: Inventory = Depends(get_inventory),
):
    try:
        data = file.file.read()
    finally:
        file.file.close()

    meta = ImageMeta(
        original_name=file.filename or "image.jpg",
        file_size=len(data),
        mime_type=file.content_type or "application/octet-stream",
    )
    return inventory.images.save_image(data, meta, product_id)


@router.get("/products/{product_id}/image", response_model=ImageOut)
def get_product_image(product_id: int, inventory: Inventory = Depends(get_inventory)):
    image = inventory.images.get_by_product_id(product_id)
    if not image:
        raise HTTPException(status_code=404, detail="Image not found")
    return image


@router.delete("/products/{product_id}/image")
def delete_product_image(product_id: int, inventory: Inventory = Depends(get_inventory)):
    return {"deleted": inventory.images.delete_image(product_id)}


@router.get("/images/{image_id}", response_model=ImageOut)
def get_image(image_id: str, inventory: Inventory = Depends(get_inventory)):
    image = inventory.images.get_by_image_id(image_id)
    if not image:
        raise HTTPException(status_code=404, detail="Image not found")
    return image
