"""Chart generation using matplotlib, returns PNG bytes for Telegram."""

from __future__ import annotations

import io
import logging
from datetime import date
from typing import Any

logger = logging.getLogger(__name__)

_BG = "#1a1a2e"
_PANEL = "#16213e"
_MET = "#4ecca3"
_MISSED = "#e94560"
_FLUID_COLORS = ("#4ecca3", "#3da5d9", "#f8b500", "#e94560", "#a06cd5", "#f2f2f2", "#73bfb8")


def _style_axis(ax) -> None:
    ax.set_facecolor(_PANEL)
    ax.tick_params(colors="white")
    for spine in ax.spines.values():
        spine.set_edgecolor("#444")


def _to_png(fig) -> bytes:
    import matplotlib.pyplot as plt

    plt.tight_layout()
    buf = io.BytesIO()
    plt.savefig(buf, format="png", dpi=120, bbox_inches="tight", facecolor=fig.get_facecolor())
    plt.close(fig)
    buf.seek(0)
    return buf.read()


def generate_weekly_chart(days: list[tuple[date, float]], goal_ml: float) -> bytes | None:
    """Bar chart of effective intake per day against the goal line.

    Args:
        days: (day, effective ml) pairs ordered by date.
        goal_ml: Daily goal drawn as a dashed reference line.

    Returns:
        PNG image as bytes, or None if generation fails.
    """
    import matplotlib.pyplot as plt
    import matplotlib.ticker as mticker

    if not days:
        return None

    try:
        labels = [d.strftime("%d/%m") for d, _ in days]
        values = [ml for _, ml in days]
        colors = [_MET if ml >= goal_ml else _MISSED for ml in values]

        fig, ax = plt.subplots(figsize=(8, 4.5), facecolor=_BG)
        fig.suptitle("Hidratação - últimos 7 dias", color="white", fontsize=14, fontweight="bold")
        ax.bar(labels, values, color=colors, edgecolor="none")
        ax.axhline(goal_ml, color="white", linestyle="--", linewidth=0.8, alpha=0.6)
        ax.set_ylabel("ml", color="white")
        ax.yaxis.set_major_formatter(mticker.FuncFormatter(lambda x, _: f"{int(x):,}".replace(",", ".")))
        _style_axis(ax)
        return _to_png(fig)
    except Exception as exc:
        logger.error("Weekly chart generation failed: %s", exc)
        return None


def generate_fluid_chart(breakdown: list[dict[str, Any]]) -> bytes | None:
    """Donut chart of the beverage mix by effective volume.

    Args:
        breakdown: Rows from ``insights.beverage_breakdown``.

    Returns:
        PNG image as bytes, or None when there is nothing to plot or generation fails.
    """
    import matplotlib.pyplot as plt

    rows = [r for r in breakdown if r["effective_ml"] > 0]
    if not rows:
        return None

    try:
        fig, ax = plt.subplots(figsize=(5, 5), facecolor=_BG)
        ax.pie(
            [r["effective_ml"] for r in rows],
            labels=[r["fluid_type"].label for r in rows],
            colors=[_FLUID_COLORS[i % len(_FLUID_COLORS)] for i in range(len(rows))],
            autopct="%1.0f%%",
            startangle=90,
            wedgeprops={"width": 0.45, "edgecolor": _BG},
            textprops={"color": "white"},
        )
        ax.set_title("Bebidas da semana", color="white", fontsize=13, fontweight="bold")
        return _to_png(fig)
    except Exception as exc:
        logger.error("Fluid chart generation failed: %s", exc)
        return None
