from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import altair as alt
import pandas as pd

from core.settings import DAY_LABELS, METRICS

alt.data_transformers.disable_max_rows()

METRIC_LABELS = {
    "inventory": "Inventory",
    "procAmt": "Procurement Amount",
    "salesAmt": "Sales Amount",
}

# SVG dasharray per metric ("0" = solid) and the equivalent Vega-Lite range.
DASH_PATTERNS = {"inventory": "0", "procAmt": "6 4", "salesAmt": "2 6"}
VEGA_DASHES = {"inventory": [1, 0], "procAmt": [6, 4], "salesAmt": [2, 6]}


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def hue_for(product_id: str) -> int:
    """Stable hue in [0, 360) from a 31-polynomial hash over UTF-16 code units."""
    data = str(product_id).encode("utf-16-le", errors="surrogatepass")
    h = 0
    for i in range(0, len(data), 2):
        code = data[i] | (data[i + 1] << 8)
        h = (h * 31 + code) % 2**32
    return h % 360


def color_for(product_id: str) -> str:
    return f"hsl({hue_for(product_id)} 70% 45%)"


def dash_for(metric: str) -> str:
    return DASH_PATTERNS.get(metric, DASH_PATTERNS["salesAmt"])


def series_key(product_id: str, metric: str) -> str:
    return f"{product_id}__{metric}"


def build_legend(selected: Iterable[str], products: Iterable[Dict[str, str]]) -> Dict[str, Dict[str, str]]:
    """Legend entries keyed like the pivot columns, e.g. `P001__inventory`."""
    name_by_id = {p["id"]: p.get("name") for p in products}
    legend: Dict[str, Dict[str, str]] = {}
    for pid in selected:
        name = name_by_id.get(pid) or pid
        for metric in METRICS:
            legend[series_key(pid, metric)] = {
                "pid": pid,
                "label": f"{name} • {METRIC_LABELS[metric]}",
                "metric": metric,
            }
    return legend


def build_styles(selected: Iterable[str]) -> Dict[str, Dict[str, str]]:
    return {
        series_key(pid, metric): {"color": color_for(pid), "dash": dash_for(metric)}
        for pid in selected
        for metric in METRICS
    }


def build_series_chart(frame: pd.DataFrame, legend: Dict[str, Dict[str, str]]) -> Optional[alt.LayerChart]:
    """Inventory on the left axis, amounts on the right; one colour per product.

    `frame` is the long format from `metrics_series.pivot_frame`; days with no
    data have no row, so lines are never drawn down to zero for them.
    """
    if frame.empty:
        return None

    df = frame.copy()
    df["series"] = df["key"].map(lambda k: legend.get(k, {}).get("label", k))
    products: List[str] = list(dict.fromkeys(df["product_id"].tolist()))

    base = alt.Chart(df).encode(
        x=alt.X("label:O", title=None, sort=list(DAY_LABELS.values())),
        color=alt.Color(
            "product_id:N",
            title="Product",
            scale=alt.Scale(domain=products, range=[color_for(p) for p in products]),
        ),
        strokeDash=alt.StrokeDash(
            "metric:N",
            title="Metric",
            scale=alt.Scale(domain=list(METRICS), range=[VEGA_DASHES[m] for m in METRICS]),
        ),
        detail="key:N",
        tooltip=[
            alt.Tooltip("label:N", title="Day"),
            alt.Tooltip("series:N", title="Series"),
            alt.Tooltip("value:Q", title="Value", format=",.2~f"),
        ],
    )

    inventory = (
        base.transform_filter(alt.datum.metric == "inventory")
        .mark_line(interpolate="monotone")
        .encode(y=alt.Y("value:Q", title="Inventory", axis=alt.Axis(orient="left")))
    )
    amounts = (
        base.transform_filter(alt.datum.metric != "inventory")
        .mark_line(interpolate="monotone")
        .encode(y=alt.Y("value:Q", title="Amount", axis=alt.Axis(orient="right", format="~s")))
    )
    return alt.layer(inventory, amounts).resolve_scale(y="independent")
