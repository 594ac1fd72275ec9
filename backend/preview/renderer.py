"""Off-screen themed clones of a live page element.

ThemeCloneRenderer deep-clones the capture target inside the page,
snapshots the computed style of every element onto the copy and wraps it
in a container that carries the theme class and CSS variables. Containers
are parked below the live document, outside the viewport, with pointer
events disabled, so the page the user sees is never repainted.

The page object only needs Playwright's ``evaluate(expression, arg)``.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog

from core.exceptions import ElementNotFoundError
from preview.models import Theme
from preview.themes import THEMED_PROPERTIES, theme_variables

logger = structlog.get_logger(__name__)

CLONE_ATTRIBUTE = "data-preview-clone"

# Gap (px) between the live document and a parked container, and between
# the page's left edge and the container. Keeps padded clip rects on-page.
DEFAULT_PARKING_GAP = 64


CLONE_SCRIPT = """
({ selector, theme, variables, skip, containerId, attribute, gap }) => {
  const source = document.querySelector(selector);
  if (!source) {
    return null;
  }

  const skipped = new Set(skip);
  const snapshot = (from, to) => {
    const computed = window.getComputedStyle(from);
    for (const prop of Array.from(computed)) {
      if (skipped.has(prop)) {
        continue;
      }
      to.style.setProperty(
        prop,
        computed.getPropertyValue(prop),
        computed.getPropertyPriority(prop),
      );
    }
    const count = Math.min(from.children.length, to.children.length);
    for (let i = 0; i < count; i++) {
      snapshot(from.children[i], to.children[i]);
    }
  };

  const clone = source.cloneNode(true);
  snapshot(source, clone);
  clone.querySelectorAll('[data-theme]').forEach((el) => {
    el.dataset.theme = theme;
  });
  if (clone.hasAttribute && clone.hasAttribute('data-theme')) {
    clone.dataset.theme = theme;
  }

  const top = document.documentElement.scrollHeight + gap;
  const container = document.createElement('div');
  container.setAttribute(attribute, containerId);
  container.setAttribute('aria-hidden', 'true');
  container.classList.add(theme);
  container.style.position = 'absolute';
  container.style.left = `${gap}px`;
  container.style.top = `${top}px`;
  container.style.width = `${source.offsetWidth}px`;
  container.style.height = `${source.offsetHeight}px`;
  container.style.overflow = 'hidden';
  container.style.pointerEvents = 'none';
  container.style.margin = '0';
  for (const [name, value] of Object.entries(variables)) {
    container.style.setProperty(name, value);
  }

  container.appendChild(clone);
  document.body.appendChild(container);

  const rect = clone.getBoundingClientRect();
  return {
    x: rect.left + window.scrollX,
    y: rect.top + window.scrollY,
    width: rect.width,
    height: rect.height,
  };
}
""".strip()

DISCARD_SCRIPT = """
({ containerId, attribute }) => {
  const container = document.querySelector(`[${attribute}="${containerId}"]`);
  if (!container) {
    return false;
  }
  container.remove();
  return true;
}
""".strip()


@dataclass(frozen=True)
class ClipBox:
    """Rectangle in page (document) coordinates, CSS pixels."""
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClipBox":
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
        )

    def expand(self, padding: float) -> "ClipBox":
        """Grow by ``padding`` on every side, clamped at the page origin."""
        x = max(self.x - padding, 0.0)
        y = max(self.y - padding, 0.0)
        right = self.x + self.width + padding
        bottom = self.y + self.height + padding
        return ClipBox(x=x, y=y, width=right - x, height=bottom - y)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class ThemedClone:
    """Handle on an off-screen container holding one themed copy."""
    container_id: str
    theme: Theme
    selector: str
    box: ClipBox


class ThemeCloneRenderer:
    """Creates and removes themed off-screen copies of a page element."""

    def __init__(self, parking_gap: int = DEFAULT_PARKING_GAP):
        self.parking_gap = parking_gap

    async def clone(self, page: Any, selector: str, theme: Theme) -> ThemedClone:
        """Clone the element matching ``selector`` into an off-screen container.

        Args:
            page: Playwright page showing the live workflow
            selector: CSS selector of the capture target
            theme: Theme to force onto the copy

        Returns:
            ThemedClone describing the parked container

        Raises:
            ElementNotFoundError: If nothing matches ``selector``
        """
        theme = Theme(theme)
        container_id = uuid4().hex
        box = await page.evaluate(
            CLONE_SCRIPT,
            {
                "selector": selector,
                "theme": theme.value,
                "variables": theme_variables(theme),
                "skip": list(THEMED_PROPERTIES),
                "containerId": container_id,
                "attribute": CLONE_ATTRIBUTE,
                "gap": self.parking_gap,
            },
        )
        if box is None:
            raise ElementNotFoundError(selector)

        clone = ThemedClone(
            container_id=container_id,
            theme=theme,
            selector=selector,
            box=ClipBox.from_dict(box),
        )
        logger.debug("Themed clone created", theme=theme.value, container_id=container_id,
                     width=clone.box.width, height=clone.box.height)
        return clone

    async def discard(self, page: Any, clone: Optional[ThemedClone]) -> bool:
        """Remove a clone's container. Returns False if it was already gone."""
        if clone is None:
            return False
        removed = await page.evaluate(
            DISCARD_SCRIPT,
            {"containerId": clone.container_id, "attribute": CLONE_ATTRIBUTE},
        )
        return bool(removed)
