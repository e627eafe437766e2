# inventory/utils/images.py
import base64
import io
import secrets
import string
import time

from PIL import Image

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_image_id() -> str:
    """img_<epoch ms>_<9 random base-36 chars>, unique without coordination."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"img_{int(time.time() * 1000)}_{suffix}"


def _extension(original_name: str) -> str:
    if "." not in original_name:
        return "jpg"
    return original_name.rsplit(".", 1)[-1].lower() or "jpg"


def image_file_name(product_id: int, image_id: str, original_name: str) -> str:
    return f"product_{product_id}_{image_id}.{_extension(original_name)}"


def image_file_path(prefix: str, file_name: str) -> str:
    return f"{prefix.rstrip('/')}/{file_name}"


def encode_thumbnail(data: bytes, max_size: int = 300, quality: int = 80) -> str:
    """
    Fit the image within max_size x max_size (never upscaling), re-encode it
    as JPEG and return it as a data URL. Raises ValueError for bytes that
    are not a decodable image.
    """
    try:
        im = Image.open(io.BytesIO(data))
        im = im.convert("RGB")
    except OSError as e:
        raise ValueError(f"Unsupported image data: {e}") from e

    im.thumbnail((max_size, max_size))
    buf = io.BytesIO()
    im.save(buf, format="JPEG", quality=quality, optimize=True)
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/jpeg;base64,{encoded}"
