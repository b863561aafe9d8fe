"""Byte size helpers."""

_UNITS = {
    "GB": 1024 ** 3,
    "MB": 1024 ** 2,
    "KB": 1024,
    "B": 1,
}


def parse_size(value: str) -> int:
    """
    Parse a server size string such as ``"2000MB"`` or ``"95 mb"`` into bytes.

    Raises:
        ValueError: on an unknown unit or a non-integer amount
    """
    text = value.strip().upper()
    for suffix, factor in _UNITS.items():
        if text.endswith(suffix):
            amount = text[: -len(suffix)].strip()
            try:
                return int(amount) * factor
            except ValueError:
                raise ValueError(f"Invalid size format: {value}") from None
    raise ValueError(f"Invalid size format: {value}")


def human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"
