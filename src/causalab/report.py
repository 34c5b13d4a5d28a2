"""LabReport: what a lab produced, rendered as text, YAML or JSON."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import yaml


def _plain(value: Any) -> Any:
    """Convert numpy / pandas values into YAML- and JSON-safe builtins."""
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, list | tuple | set | frozenset):
        items = sorted(value) if isinstance(value, set | frozenset) else value
        return [_plain(v) for v in items]
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, Path):
        return str(value)
    return value


@dataclass
class ReportSection:
    """One heading of a lab report: narrative text and an optional table."""

    heading: str
    text: str = ""
    table: pd.DataFrame | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"heading": self.heading, "text": self.text}
        if self.table is not None:
            d["table"] = _plain(self.table.to_dict(orient="records"))
        return d


@dataclass
class LabReport:
    lab: str
    title: str
    sections: list[ReportSection] = field(default_factory=list)
    figures: list[Path] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)

    def add(self, heading: str, text: str = "", table: pd.DataFrame | None = None) -> ReportSection:
        section = ReportSection(heading=heading, text=text, table=table)
        self.sections.append(section)
        return section

    def render_text(self) -> str:
        lines = [self.title, "=" * len(self.title), ""]
        for section in self.sections:
            lines += [section.heading, "-" * len(section.heading)]
            if section.text:
                lines.append(section.text)
            if section.table is not None and not section.table.empty:
                lines.append(section.table.to_string(index=False, float_format=lambda v: f"{v:.4f}"))
            lines.append("")
        if self.metrics:
            lines += ["Metrics", "-------"]
            width = max(len(k) for k in self.metrics)
            for k, v in self.metrics.items():
                shown = f"{v:.4f}" if isinstance(v, float) else str(v)
                lines.append(f"{k:<{width}}  {shown}")
            lines.append("")
        if self.figures:
            lines.append("Figures:")
            lines += [f"  {p}" for p in self.figures]
        return "\n".join(lines).rstrip() + "\n"

    def to_dict(self) -> dict[str, Any]:
        return {
            "lab": self.lab,
            "title": self.title,
            "metrics": _plain(self.metrics),
            "sections": [s.to_dict() for s in self.sections],
            "figures": [str(p) for p in self.figures],
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, default=str)

    def render(self, fmt: str = "text") -> str:
        renderers = {"text": self.render_text, "yaml": self.to_yaml, "json": self.to_json}
        if fmt not in renderers:
            raise ValueError(f"Unknown report format {fmt!r}; use one of {list(renderers)}")
        return renderers[fmt]()
