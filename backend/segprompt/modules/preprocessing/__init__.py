# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Preprocessing Module
Public API for upload validation and the tensor codec.
"""

from segprompt.modules.preprocessing.tensor_codec import (
    encode_image,
    encode_prompt,
    image_size,
    scale_box,
    scale_point,
    validate_box,
)
from segprompt.modules.preprocessing.validator import (
    validate_image_bytes,
    validate_image_file,
)

__all__ = [
    # Validator
    "validate_image_bytes",
    "validate_image_file",
    # Tensor codec
    "encode_image",
    "encode_prompt",
    "image_size",
    "scale_point",
    "scale_box",
    "validate_box",
]
