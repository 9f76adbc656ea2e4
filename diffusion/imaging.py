# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Conversions between PIL images, uint8 arrays and model tensors.

Model tensors are float32 ``(B, 3, H, W)`` in [-1, 1]; images are PIL
``RGB`` images or ``(H, W, 3)`` uint8 arrays.
"""
from __future__ import annotations

import io
import numpy as np
from typing import List, Sequence, Union

from PIL import Image

ImageLike = Union[Image.Image, np.ndarray]


def image_to_tensor(image: ImageLike, width: int, height: int) -> np.ndarray:
    """Resize ``image`` to ``width``×``height`` and return ``(1, 3, H, W)``."""
    if isinstance(image, np.ndarray):
        image = Image.fromarray(np.asarray(image, dtype=np.uint8))
    image = image.convert('RGB')
    if image.size != (width, height):
        image = image.resize((width, height), Image.Resampling.BICUBIC)
    data = np.asarray(image, dtype=np.float32) / 127.5 - 1.0
    return data.transpose(2, 0, 1)[np.newaxis].astype(np.float32)


def images_to_tensor(images: Sequence[ImageLike], width: int,
                     height: int) -> np.ndarray:
    """Stack several images (e.g. video frames) into ``(N, 3, H, W)``."""
    return np.concatenate(
        [image_to_tensor(image, width, height) for image in images], axis=0)


def tensor_to_images(tensor: np.ndarray) -> List[Image.Image]:
    """Convert a ``(B, C, H, W)`` tensor in [-1, 1] to B PIL images."""
    if tensor.ndim != 4:
        raise ValueError(f"Expected 4-D tensor, got {tensor.ndim}-D")
    # Rescale [-1, 1] → [0, 255] uint8
    data = ((tensor + 1.0) * 127.5).clip(0, 255).astype(np.uint8)
    images = []
    for item in data:
        frame = item.transpose(1, 2, 0)  # (C,H,W)→(H,W,C)
        if frame.shape[-1] == 1:
            frame = frame.squeeze(-1)
        images.append(Image.fromarray(frame))
    return images


def image_to_bytes(image: Image.Image, format: str = 'PNG') -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=format)
    return buffer.getvalue()


def tensor_to_image_bytes(tensor: np.ndarray, format: str = 'PNG') -> List[bytes]:
    """Encode every image in a ``(B, C, H, W)`` tensor."""
    return [image_to_bytes(image, format) for image in tensor_to_images(tensor)]


__all__ = [
    'ImageLike',
    'image_to_tensor',
    'images_to_tensor',
    'tensor_to_images',
    'image_to_bytes',
    'tensor_to_image_bytes',
]
