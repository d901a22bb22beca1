import random
import string
import time

_BASE36 = string.digits + string.ascii_lowercase


def generate_row_id(suffix_length: int = 9) -> str:
    """Epoch millis followed by a random base36 suffix; sorts roughly by creation time."""
    millis = int(time.time() * 1000)
    suffix = ''.join(random.choice(_BASE36) for _ in range(suffix_length))
    return f"{millis}{suffix}"
