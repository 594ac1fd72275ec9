"""Theme palettes applied to off-screen clones.

The variables mirror the design tokens the workflow editor's stylesheet
reads (``bg-background``, ``text-foreground``, ...). Setting them on the
clone's container, instead of on ``:root``, lets both themes render at the
same time without touching the live page.
"""

from typing import Dict

from preview.models import Theme

LIGHT_VARIABLES: Dict[str, str] = {
    "--background": "hsl(0 0% 100%)",
    "--foreground": "hsl(240 10% 3.9%)",
    "--card": "hsl(0 0% 100%)",
    "--card-foreground": "hsl(240 10% 3.9%)",
    "--popover": "hsl(0 0% 100%)",
    "--popover-foreground": "hsl(240 10% 3.9%)",
    "--primary": "hsl(240 5.9% 10%)",
    "--primary-foreground": "hsl(0 0% 98%)",
    "--secondary": "hsl(240 4.8% 95.9%)",
    "--secondary-foreground": "hsl(240 5.9% 10%)",
    "--muted": "hsl(240 4.8% 95.9%)",
    "--muted-foreground": "hsl(240 3.8% 46.1%)",
    "--accent": "hsl(240 4.8% 95.9%)",
    "--accent-foreground": "hsl(240 5.9% 10%)",
    "--destructive": "hsl(0 84.2% 60.2%)",
    "--destructive-foreground": "hsl(0 0% 98%)",
    "--border": "hsl(240 5.9% 90%)",
    "--input": "hsl(240 5.9% 90%)",
    "--ring": "hsl(240 5.9% 10%)",
}

DARK_VARIABLES: Dict[str, str] = {
    "--background": "hsl(240 10% 3.9%)",
    "--foreground": "hsl(0 0% 98%)",
    "--card": "hsl(240 10% 3.9%)",
    "--card-foreground": "hsl(0 0% 98%)",
    "--popover": "hsl(240 10% 3.9%)",
    "--popover-foreground": "hsl(0 0% 98%)",
    "--primary": "hsl(0 0% 98%)",
    "--primary-foreground": "hsl(240 5.9% 10%)",
    "--secondary": "hsl(240 3.7% 15.9%)",
    "--secondary-foreground": "hsl(0 0% 98%)",
    "--muted": "hsl(240 3.7% 15.9%)",
    "--muted-foreground": "hsl(240 5% 64.9%)",
    "--accent": "hsl(240 3.7% 15.9%)",
    "--accent-foreground": "hsl(0 0% 98%)",
    "--destructive": "hsl(0 62.8% 30.6%)",
    "--destructive-foreground": "hsl(0 0% 98%)",
    "--border": "hsl(240 3.7% 15.9%)",
    "--input": "hsl(240 3.7% 15.9%)",
    "--ring": "hsl(240 4.9% 83.9%)",
}

# RGB equivalents of --background, used when flattening transparency (jpeg)
BACKGROUND_RGB = {
    Theme.LIGHT: (255, 255, 255),
    Theme.DARK: (9, 9, 11),
}

# Computed properties left off the style snapshot so they resolve from the
# themed container rather than from the live page's current theme.
THEMED_PROPERTIES = (
    "color",
    "background-color",
    "border-color",
    "border-top-color",
    "border-right-color",
    "border-bottom-color",
    "border-left-color",
    "border-block-start-color",
    "border-block-end-color",
    "border-inline-start-color",
    "border-inline-end-color",
    "outline-color",
    "column-rule-color",
    "text-decoration-color",
    "text-emphasis-color",
    "caret-color",
    "fill",
    "stroke",
    "box-shadow",
)


def theme_variables(theme: Theme) -> Dict[str, str]:
    """CSS custom properties for a theme (a fresh copy)."""
    if Theme(theme) == Theme.DARK:
        return dict(DARK_VARIABLES)
    return dict(LIGHT_VARIABLES)


def theme_background(theme: Theme) -> tuple:
    return BACKGROUND_RGB[Theme(theme)]
