"""
Load Model
==========

Loads are declared in monthly consumption units (kWh per month). The
engine works with an average kW rate over the month.
"""

DEFAULT_HOURS_PER_MONTH = 720.0  # 30 days
DEFAULT_NOMINAL_LOAD_KW = 1.0


def monthly_units_to_kw(
    units: float,
    hours_per_month: float = DEFAULT_HOURS_PER_MONTH,
    nominal_load_kw: float = DEFAULT_NOMINAL_LOAD_KW,
) -> float:
    """
    Average demand for a monthly consumption figure.

    A load declaring no consumption still draws ``nominal_load_kw`` so
    that an unconfigured load box shows up in the balance.
    """
    if hours_per_month <= 0:
        hours_per_month = DEFAULT_HOURS_PER_MONTH
    load_kw = max(0.0, units) / hours_per_month
    if load_kw == 0:
        return nominal_load_kw
    return load_kw
