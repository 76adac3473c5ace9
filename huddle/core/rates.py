# huddle/core/rates.py
def rate_percent(part: int, whole: int) -> int:
    """
    `part / whole * 100` rounded half up to an int; 0 when `whole` is 0.

    Integer arithmetic so that e.g. 1/8 -> 13 rather than banker's 12.
    """
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)
