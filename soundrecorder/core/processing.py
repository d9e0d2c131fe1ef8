"""Audio level helpers for SoundRecorder.

This module converts raw amplitudes into the 0-120 dB scale used by the level
meter and classifies audio devices by driver.
"""

from typing import Union

import numpy as np

MAX_INT16 = 32768


def amplitude_to_db(amplitude: Union[int, float]) -> float:
    """Convert a peak int16 amplitude to a dB level.

    Args:
        amplitude: Peak absolute sample value (0-32768)

    Returns:
        dB level (0-120 range), 0 for silence
    """
    if amplitude <= 0:
        return 0.0
    db = 20 * np.log10(amplitude / MAX_INT16)
    # Normalize to 0-120 range
    return float(max(0.0, min(120.0, db + 120)))


def peak_amplitude(samples: np.ndarray) -> int:
    """Return the largest absolute value in an int16 sample block."""
    if samples.size == 0:
        return 0
    return int(np.abs(samples.astype(np.int32)).max())


def detect_driver_type(device_name: str) -> str:
    """Detect the audio driver type from device name.

    Args:
        device_name: The name of the audio device

    Returns:
        Driver type: 'pulse', 'alsa', 'jack', 'default', etc.
    """
    name_lower = device_name.lower()

    if 'pulse' in name_lower or 'pipewire' in name_lower:
        return 'pulse'
    elif 'alsa' in name_lower or 'hw:' in name_lower or 'plughw' in name_lower:
        return 'alsa'
    elif 'jack' in name_lower:
        return 'jack'
    elif 'usb' in name_lower:
        return 'usb'
    else:
        return 'default'
