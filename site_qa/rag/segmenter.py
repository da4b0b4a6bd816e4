"""Fixed-size overlapping character windows."""


def segment(text: str, target_size: int, overlap: int) -> list[str]:
    """Split text into windows of ``target_size`` characters.

    Each window after the first starts ``overlap`` characters before the end of
    the previous one. The final window may be shorter. Works on code points, so
    multi-byte characters are never split.

    Args:
        text: Text to split
        target_size: Window length in characters
        overlap: Characters shared by consecutive windows

    Returns:
        List of windows, empty for blank text

    Raises:
        ValueError: If ``overlap`` is negative or not smaller than ``target_size``
    """
    if target_size <= 0:
        raise ValueError(f"target_size must be positive, got {target_size}")
    if overlap < 0 or overlap >= target_size:
        raise ValueError(f"overlap must be in [0, target_size), got overlap={overlap}, target_size={target_size}")

    if not text.strip():
        return []

    windows = []
    start = 0
    while start < len(text):
        end = min(start + target_size, len(text))
        windows.append(text[start:end])
        if end == len(text):
            break
        start = end - overlap
    return windows
