"""Image Validator/Normalizer - accepts or rejects candidates, emits canonical JPEGs"""
from io import BytesIO
from typing import Optional, Tuple, Union

from PIL import Image, ImageChops, ImageOps, ImageStat, UnidentifiedImageError

from config.settings import Settings
from core.models import Rejection, ValidatedImage
from utils.logger import get_logger

logger = get_logger(__name__)

# Statistics are computed on a thumbnail; exact values are not needed
STATS_SAMPLE_SIZE = (256, 256)
# Per-pixel distance from white that counts as content rather than JPEG noise
CONTENT_DIFF_THRESHOLD = 32


class ImageValidator:
    """
    Validate raw candidate bytes and normalize accepted images.

    Checks run in order: byte size cap, decode, minimum dimensions,
    placeholder detection. Accepted images are flattened onto white, resized
    to fit inside target_size x target_size (never enlarged) and encoded as
    JPEG without metadata.
    """

    def __init__(
        self,
        min_size: int = None,
        target_size: int = None,
        max_bytes: int = None,
        quality: int = None,
        placeholder_brightness: float = None,
        placeholder_min_stddev: float = None,
        placeholder_min_content_ratio: float = None
    ):
        self.min_size = min_size or Settings.MIN_IMAGE_SIZE
        self.target_size = target_size or Settings.TARGET_SIZE
        self.max_bytes = max_bytes or Settings.MAX_IMAGE_BYTES
        self.quality = quality or Settings.JPEG_QUALITY
        self.placeholder_brightness = (
            Settings.PLACEHOLDER_BRIGHTNESS if placeholder_brightness is None else placeholder_brightness
        )
        self.placeholder_min_stddev = (
            Settings.PLACEHOLDER_MIN_STDDEV if placeholder_min_stddev is None else placeholder_min_stddev
        )
        self.placeholder_min_content_ratio = (
            Settings.PLACEHOLDER_MIN_CONTENT_RATIO if placeholder_min_content_ratio is None
            else placeholder_min_content_ratio
        )

    def process(self, raw: bytes) -> Union[ValidatedImage, Rejection]:
        """
        Validate and normalize one candidate.

        Args:
            raw: Candidate image bytes

        Returns:
            ValidatedImage on success, Rejection with a reason code otherwise
        """
        if not raw:
            return Rejection('corrupt', 'empty input')
        if len(raw) > self.max_bytes:
            return Rejection('too_large', f'{len(raw)} bytes exceeds {self.max_bytes} bytes')

        try:
            img = Image.open(BytesIO(raw))
            img.load()
            img = ImageOps.exif_transpose(img)
        except Image.DecompressionBombError as e:
            return Rejection('too_large', str(e))
        except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as e:
            return Rejection('corrupt', f'cannot decode image: {e}')

        width, height = img.size
        if width < self.min_size or height < self.min_size:
            return Rejection('too_small', f'{width}x{height} is below {self.min_size}x{self.min_size}')

        rgb = self._flatten(img)

        rejection = self._check_placeholder(rgb)
        if rejection is not None:
            return rejection

        data, new_size = self._normalize(rgb)
        logger.debug(f"    Normalized {width}x{height} -> {new_size[0]}x{new_size[1]} ({len(data)} bytes)")

        return ValidatedImage(
            data=data,
            width=new_size[0],
            height=new_size[1],
            original_width=width,
            original_height=height,
        )

    @staticmethod
    def _flatten(img: Image.Image) -> Image.Image:
        """Convert to RGB, compositing any transparency onto white."""
        if img.mode == 'P' and 'transparency' in img.info:
            img = img.convert('RGBA')
        if img.mode in ('RGBA', 'LA', 'PA'):
            rgba = img.convert('RGBA')
            background = Image.new('RGB', rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel('A'))
            return background
        if img.mode != 'RGB':
            return img.convert('RGB')
        return img

    def _check_placeholder(self, rgb: Image.Image) -> Optional[Rejection]:
        """
        Detect blank or flat images.

        Bright images are only rejected when almost nothing in the frame
        differs from white; studio shots of thin products on white backgrounds
        have a high mean but still carry content.
        """
        sample = rgb.copy()
        sample.thumbnail(STATS_SAMPLE_SIZE)
        stat = ImageStat.Stat(sample.convert('L'))
        mean, stddev = stat.mean[0], stat.stddev[0]

        if stddev < self.placeholder_min_stddev:
            return Rejection('placeholder', f'brightness stddev {stddev:.2f} (single-color image)')

        if mean > self.placeholder_brightness:
            ratio = self._content_ratio(sample)
            if ratio < self.placeholder_min_content_ratio:
                return Rejection(
                    'placeholder',
                    f'mean brightness {mean:.1f} with {ratio:.2%} content (blank or near-white image)'
                )
        return None

    @staticmethod
    def _content_ratio(sample: Image.Image) -> float:
        """Share of pixels that differ noticeably from a white frame."""
        white = Image.new('RGB', sample.size, (255, 255, 255))
        diff = ImageChops.difference(sample, white).convert('L')
        mask = diff.point(lambda value: 255 if value > CONTENT_DIFF_THRESHOLD else 0)
        return ImageStat.Stat(mask).mean[0] / 255.0

    def _normalize(self, rgb: Image.Image) -> Tuple[bytes, Tuple[int, int]]:
        """
        Fit inside the target box preserving aspect ratio, then encode.

        Returns:
            Tuple of (JPEG bytes, (width, height))
        """
        width, height = rgb.size
        scale = min(self.target_size / width, self.target_size / height, 1.0)
        if scale < 1.0:
            new_size = (max(1, round(width * scale)), max(1, round(height * scale)))
            rgb = rgb.resize(new_size, Image.LANCZOS)

        output = BytesIO()
        rgb.save(output, format='JPEG', quality=self.quality, optimize=True)
        return output.getvalue(), rgb.size
