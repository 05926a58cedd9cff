# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Pipeline Stage Modules
preprocessing  upload validation and tensor codec
inference      model sessions, embedding cache, prompt decoding
rendering      mask upscaling and overlay rendering
"""
