import io

import numpy as np
import pytest
from PIL import Image

from pixelbatch.core.exceptions import DecodeFailure
from pixelbatch.core.pyd_schemas import OutputFormat
from pixelbatch.infrastructure.adapters import PillowImageCodec, SystemClock


@pytest.mark.asyncio
async def test_decode_and_encode_roundtrip(make_image_bytes):
    codec = PillowImageCodec()
    pixels = await codec.decode(make_image_bytes(10, 6, (9, 8, 7)), name="a.png")
    assert pixels.shape == (6, 10, 4)

    data = await codec.encode(pixels, output_format=OutputFormat.png)
    with Image.open(io.BytesIO(data)) as img:
        assert img.size == (10, 6)
        assert img.getpixel((0, 0)) == (9, 8, 7, 255)


@pytest.mark.asyncio
async def test_decode_failure_is_raised_from_thread():
    with pytest.raises(DecodeFailure):
        await PillowImageCodec().decode(b"nope", name="n.png")


@pytest.mark.asyncio
async def test_jpeg_uses_configured_matte(rgba):
    codec = PillowImageCodec(matte=(0, 0, 0))
    data = await codec.encode(rgba(8, 8, (255, 255, 255, 0)), output_format=OutputFormat.jpeg, quality=95)
    with Image.open(io.BytesIO(data)) as img:
        assert max(img.getpixel((4, 4))) < 10


def test_system_clock_is_timezone_aware():
    now = SystemClock().now()
    assert now.tzinfo is not None
    assert np.isfinite(now.timestamp())
