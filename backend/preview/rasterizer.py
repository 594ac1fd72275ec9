"""Turn an off-screen themed clone into an encoded image.

Capture goes through Playwright's page screenshot with a clip rectangle in
document coordinates; encoding goes through Pillow so webp, png and jpeg
are all available regardless of what the browser can emit.
"""

import io
from typing import Any

import structlog
from PIL import Image

from core.exceptions import RasterizationError
from preview.models import ImageFormat, Theme
from preview.renderer import ClipBox, ThemedClone
from preview.themes import theme_background

logger = structlog.get_logger(__name__)


def target_size(box: ClipBox, scale: float) -> tuple:
    """Pixel size of ``box`` rendered at ``scale``x."""
    return (max(int(round(box.width * scale)), 1), max(int(round(box.height * scale)), 1))


def encode_image(
    image: Image.Image,
    image_format: ImageFormat,
    quality: int = 80,
    background: tuple = (255, 255, 255),
) -> bytes:
    """Encode a Pillow image, flattening alpha where the format has none."""
    image_format = ImageFormat.parse(image_format)
    buffer = io.BytesIO()

    if image_format == ImageFormat.JPEG:
        if image.mode in ("RGBA", "LA", "P"):
            rgba = image.convert("RGBA")
            flat = Image.new("RGB", rgba.size, background)
            flat.paste(rgba, mask=rgba.split()[-1])
            image = flat
        elif image.mode != "RGB":
            image = image.convert("RGB")
        image.save(buffer, "JPEG", quality=quality, optimize=True)
    elif image_format == ImageFormat.WEBP:
        image.save(buffer, "WEBP", quality=quality, method=4)
    else:
        image.save(buffer, "PNG", optimize=True)

    return buffer.getvalue()


class Rasterizer:
    """Captures a themed clone at a given padding and scale."""

    async def rasterize(
        self,
        page: Any,
        clone: ThemedClone,
        padding: int = 32,
        scale: float = 1.5,
        image_format: ImageFormat = ImageFormat.WEBP,
        quality: int = 80,
    ) -> bytes:
        """Rasterize ``clone`` and return the encoded bytes.

        Args:
            page: Playwright page the clone lives in
            clone: Handle returned by ThemeCloneRenderer.clone
            padding: Extra pixels captured around the clone on every side
            scale: Output resolution multiplier
            image_format: Encoding of the returned buffer
            quality: Lossy quality (webp/jpeg), 1-100

        Returns:
            Non-empty encoded image buffer

        Raises:
            RasterizationError: If the browser cannot capture or Pillow cannot encode
        """
        image_format = ImageFormat.parse(image_format)
        clip = clone.box.expand(padding)
        theme = Theme(clone.theme)

        try:
            raw = await page.screenshot(
                clip=clip.to_dict(),
                full_page=True,
                type="png",
                omit_background=True,
                scale="device",
                animations="disabled",
            )
        except Exception as exc:
            logger.error("Screenshot failed", theme=theme.value, error=str(exc))
            raise RasterizationError(f"Could not rasterize {theme.value} preview: {exc}") from exc

        if not raw:
            raise RasterizationError(f"Browser returned an empty {theme.value} bitmap")

        try:
            with Image.open(io.BytesIO(raw)) as captured:
                captured.load()
                image = captured
                size = target_size(clip, scale)
                if image.size != size:
                    # Page device pixel ratio differs from the requested scale
                    image = image.resize(size, Image.LANCZOS)
                data = encode_image(image, image_format, quality, theme_background(theme))
        except Exception as exc:
            raise RasterizationError(f"Could not encode {theme.value} preview: {exc}") from exc

        if not data:
            raise RasterizationError(f"Encoded {theme.value} preview is empty")

        logger.debug("Clone rasterized", theme=theme.value, format=image_format.value,
                     size_bytes=len(data))
        return data
