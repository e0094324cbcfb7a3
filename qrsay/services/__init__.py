# Services Module
from .money import to_decimal, round_money
from .pricing import Totals, calculate_totals

__all__ = ["to_decimal", "round_money", "Totals", "calculate_totals"]
