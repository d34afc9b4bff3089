"""
Human-readable formatting of metric values.
"""

from vaultstats.core.metrics import VaultMetrics


class UnitFormatter:
    """
    Scales a value through a list of units by a fixed conversion factor.

    Attributes:
        units: Unit labels from smallest to largest
        conversion_factor: Ratio between consecutive units
        decimals: Maximum number of fraction digits shown
    """

    def __init__(self, units: list[str], conversion_factor: float, decimals: int):
        self.units = list(units)
        self.conversion_factor = conversion_factor
        self.decimals = decimals

    def scale(self, value: float) -> tuple[float, str]:
        index = 0
        while index < len(self.units) - 1 and abs(value) >= self.conversion_factor:
            value /= self.conversion_factor
            index += 1
        return value, self.units[index]

    def format(self, value: float) -> str:
        quotient, unit = self.scale(value)
        text = f"{quotient:,.{self.decimals}f}"
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        if text == "-0":
            text = "0"
        return f"{text} {unit}".rstrip()


class DecimalUnitFormatter(UnitFormatter):
    """Formats counts with SI prefixes, e.g. ``1.2 kwords``."""

    PREFIXES = ["", "k", "M", "G", "T", "P", "E", "Z", "Y"]

    def __init__(self, unit: str):
        super().__init__([prefix + unit for prefix in self.PREFIXES], 1000, 1)


class BytesFormatter(UnitFormatter):
    """Formats sizes in binary units, e.g. ``2 MB`` for 2097152 bytes."""

    def __init__(self) -> None:
        super().__init__(["B", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB"], 1024, 2)


def format_metrics(metrics: VaultMetrics) -> list[tuple[str, str]]:
    """Return (label, formatted value) rows in display order."""
    return [
        ("Notes", DecimalUnitFormatter("notes").format(metrics.notes)),
        ("Attachments", DecimalUnitFormatter("attachments").format(metrics.attachments)),
        ("Files", DecimalUnitFormatter("files").format(metrics.files)),
        ("Links", DecimalUnitFormatter("links").format(metrics.links)),
        ("Words", DecimalUnitFormatter("words").format(metrics.words)),
        ("Size", BytesFormatter().format(metrics.size)),
        ("Tags", DecimalUnitFormatter("tags").format(metrics.tags)),
        ("Quality", DecimalUnitFormatter("QoV").format(metrics.quality)),
    ]
