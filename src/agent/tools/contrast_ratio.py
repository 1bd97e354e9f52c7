"""
agent.tools.contrast_ratio - WCAG 2.x color contrast check.

Lets the model verify accessibility claims about a foreground/background
color pair instead of guessing.
"""

from __future__ import annotations

import json
import re

from pydantic import BaseModel, Field, field_validator

from agent.tools.base import BaseTool, ToolResult

_HEX = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


class ContrastRatioInput(BaseModel):
    """Input schema for the contrast_ratio tool."""

    foreground: str = Field(description="Text color as hex, e.g. '#1a1a1a' or '#fff'")
    background: str = Field(description="Background color as hex, e.g. '#ffffff'")

    @field_validator("foreground", "background")
    @classmethod
    def _check_hex(cls, value: str) -> str:
        if not _HEX.match(value.strip()):
            raise ValueError(f"not a hex color: {value!r}")
        return value.strip()


def _channel(value: int) -> float:
    c = value / 255
    return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4


def relative_luminance(hex_color: str) -> float:
    """WCAG relative luminance of an sRGB hex color."""
    digits = hex_color.lstrip("#")
    if len(digits) == 3:
        digits = "".join(d * 2 for d in digits)
    r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
    return 0.2126 * _channel(r) + 0.7152 * _channel(g) + 0.0722 * _channel(b)


def contrast_ratio(foreground: str, background: str) -> float:
    lighter, darker = sorted(
        (relative_luminance(foreground), relative_luminance(background)),
        reverse=True,
    )
    return (lighter + 0.05) / (darker + 0.05)


class ContrastRatioTool(BaseTool):
    """Compute the contrast ratio and WCAG AA/AAA pass flags for two colors."""

    name = "contrast_ratio"
    description = (
        "Check the WCAG contrast ratio between a text color and a background color. "
        "Returns the ratio and whether it passes AA and AAA for normal and large text. "
        "Use it before recommending a color pairing as accessible."
    )

    def get_schema(self) -> type[BaseModel]:
        return ContrastRatioInput

    async def execute(self, foreground: str, background: str, **kwargs) -> ToolResult:
        ratio = contrast_ratio(foreground, background)
        data = {
            "foreground": foreground,
            "background": background,
            "ratio": round(ratio, 2),
            "aa_normal": ratio >= 4.5,
            "aa_large": ratio >= 3.0,
            "aaa_normal": ratio >= 7.0,
            "aaa_large": ratio >= 4.5,
        }
        return ToolResult(output=json.dumps(data))
