"""
Generate random tokens
"""

import secrets

# Bytes of entropy; URL-safe base64 without padding gives 32 characters,
# comfortably inside the 64 character limit on QR_STR_SCENE scene strings.
SCENE_BYTES = 24


def scene():
    return secrets.token_urlsafe(SCENE_BYTES)


def oauth_state():
    return secrets.token_urlsafe(SCENE_BYTES)
