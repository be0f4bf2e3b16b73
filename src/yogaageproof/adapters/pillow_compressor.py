"""Pillow-based JPEG compression for captured photos."""

import io
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from yogaageproof.domain.errors import ValidationError
from yogaageproof.services.local_storage import ImageCompressor


@dataclass
class PillowImageCompressor(ImageCompressor):
    """Re-encode images as upright RGB JPEG with a bounded longest edge."""

    max_dimension: int = 2048
    quality: int = 85

    def compress(self, data: bytes) -> bytes:
        try:
            with Image.open(io.BytesIO(data)) as image:
                upright = ImageOps.exif_transpose(image)
                rgb = upright.convert("RGB")
        except (UnidentifiedImageError, OSError) as exc:
            raise ValidationError("Photo is not a readable image") from exc
        rgb.thumbnail(
            (self.max_dimension, self.max_dimension), Image.Resampling.LANCZOS
        )
        buffer = io.BytesIO()
        rgb.save(buffer, format="JPEG", quality=self.quality, optimize=True)
        return buffer.getvalue()
