def format_currency_short(value):
    """Format rupees in short form for dashboards, e.g. ₹1.2Cr, ₹4.5L, ₹45K."""
    if not value:
        return "₹0"
    value = float(value)
    if value >= 10_000_000:
        return f"₹{value / 10_000_000:.1f}Cr"
    elif value >= 100_000:
        return f"₹{value / 100_000:.1f}L"
    elif value >= 1_000:
        return f"₹{value / 1_000:.1f}K"
    else:
        return f"₹{value:,.0f}"
