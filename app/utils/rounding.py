import math


def round_half_up(value: float) -> int:
    """Round halves up (2.5 -> 3), unlike the built-in round() (2.5 -> 2).

    Scores and rates are compared against figures produced by the web client,
    which rounds this way.
    """
    return math.floor(value + 0.5)
