"""
Test decoding and encoding of image bytes
"""
from io import BytesIO

import numpy as np
import pytest
from PIL import Image

from enhancer.models.errors import DecodeError, EncodeError
from enhancer.services.image_service import ImageService, normalize_format

from conftest import REFERENCE_PIXELS


@pytest.fixture
def service():
    return ImageService()


def _encode_pil(image, fmt, **kwargs):
    out = BytesIO()
    image.save(out, format=fmt, **kwargs)
    return out.getvalue()


class TestDecode:
    """All-or-nothing decoding into RGBA buffers"""

    def test_png_pixels_exact(self, service, reference_png):
        buffer = service.decode(reference_png)
        assert buffer.size == (2, 2)
        assert [buffer.pixel(x, y) for y in range(2) for x in range(2)] == REFERENCE_PIXELS

    def test_rgb_jpeg_becomes_opaque_rgba(self, service):
        data = _encode_pil(Image.new('RGB', (17, 9), color=(200, 40, 40)), 'JPEG')
        buffer = service.decode(data)
        assert buffer.size == (17, 9)
        assert buffer.pixels.shape == (9, 17, 4)
        assert (buffer.pixels[..., 3] == 255).all()

    def test_palette_image_converted(self, service):
        image = Image.new('P', (3, 3))
        image.putpalette([0, 0, 0, 10, 20, 30] + [0] * 762)
        image.putpixel((1, 1), 1)
        buffer = service.decode(_encode_pil(image, 'PNG'))
        assert buffer.pixel(1, 1) == (10, 20, 30, 255)

    def test_grayscale_converted(self, service):
        buffer = service.decode(_encode_pil(Image.new('L', (2, 3), color=77), 'PNG'))
        assert buffer.size == (2, 3)
        assert buffer.pixel(1, 2) == (77, 77, 77, 255)

    def test_sixteen_bit_grayscale_scaled_down(self, service):
        values = np.array([[32768, 0], [65535, 65535]], dtype=np.uint16)
        buffer = service.decode(_encode_pil(Image.fromarray(values), 'PNG'))
        assert buffer.pixel(0, 0) == (128, 128, 128, 255)
        assert buffer.pixel(1, 0) == (0, 0, 0, 255)
        assert buffer.pixel(1, 1) == (255, 255, 255, 255)

    def test_garbage_bytes(self, service):
        with pytest.raises(DecodeError) as excinfo:
            service.decode(b'definitely not an image')
        assert isinstance(excinfo.value, ValueError)

    def test_empty_bytes(self, service):
        with pytest.raises(DecodeError):
            service.decode(b'')

    def test_truncated_png(self, service, noise_png):
        with pytest.raises(DecodeError):
            service.decode(noise_png[: len(noise_png) // 2])

    def test_load_image_from_disk(self, service, tmp_path, reference_png):
        path = tmp_path / 'input.png'
        path.write_bytes(reference_png)
        assert service.load_image(path).pixel(1, 1) == (64, 192, 32, 255)

    def test_load_image_missing_file(self, service, tmp_path):
        with pytest.raises(FileNotFoundError):
            service.load_image(tmp_path / 'missing.png')


class TestEncode:
    """Encoding through Pillow"""

    def test_png_round_trip(self, service, gradient_buffer):
        data = service.encode(gradient_buffer, 'PNG')
        assert data.startswith(b'\x89PNG')
        assert service.decode(data) == gradient_buffer

    def test_jpeg_drops_alpha(self, service, gradient_buffer):
        data = service.encode(gradient_buffer, 'jpg')
        assert Image.open(BytesIO(data)).mode == 'RGB'

    def test_unknown_format(self, service, gradient_buffer):
        with pytest.raises(EncodeError):
            service.encode(gradient_buffer, 'NOPE')

    @pytest.mark.parametrize("raw,expected", [
        ('png', 'PNG'),
        ('.jpg', 'JPEG'),
        ('tif', 'TIFF'),
        ('TIFF', 'TIFF'),
    ])
    def test_normalize_format(self, raw, expected):
        assert normalize_format(raw) == expected
