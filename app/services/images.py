from io import BytesIO

from PIL import Image, UnidentifiedImageError

from app.core.errors import BadRequestError

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}

_FORMAT_MIME = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


def detect_image_mime(data: bytes) -> str:
    """Real mime type of an uploaded photo, checked by decoding its header."""
    if not data:
        raise BadRequestError("Imagem vazia")
    try:
        with Image.open(BytesIO(data)) as img:
            image_format = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise BadRequestError("Arquivo nao e uma imagem valida") from exc
    mime = _FORMAT_MIME.get(image_format or "")
    if mime not in ALLOWED_IMAGE_TYPES:
        raise BadRequestError("Formato de imagem nao suportado. Use jpeg, png, webp ou gif")
    return mime
