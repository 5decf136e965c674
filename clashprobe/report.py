"""Plain-text report for one-shot runs."""

from __future__ import annotations

from clashprobe.models.snapshot import Snapshot

_COLUMNS = ("Name", "Protocol", "Status", "Delay", "Uptime")
_WIDTHS = (25, 12, 8, 10, 8)


def truncate(text: str, max_len: int) -> str:
    """Shorten *text* to *max_len* characters, ending in ``...`` when cut."""
    if len(text) <= max_len:
        return text
    if max_len <= 3:
        return text[:max_len]
    return text[: max_len - 3] + "..."


def _row(values: tuple[str, ...]) -> str:
    return " ".join(f"{v:<{w}}" for v, w in zip(values, _WIDTHS)).rstrip()


def render_table(snapshot: Snapshot, *, verbose: bool = False) -> str:
    """Render *snapshot* as a table followed by a summary block.

    Alive targets come first by latency, dead ones after by name. With
    *verbose*, each dead target gets its error detail on the next line.
    """
    lines = ["", "=== ClashProbe Results ===", _row(_COLUMNS), "=" * 75]

    for view in snapshot.ordered():
        current = view.current
        if current is not None and current.alive and current.latency_ms is not None:
            delay = f"{current.latency_ms:.0f}ms"
        else:
            delay = "-"
        lines.append(
            _row(
                (
                    truncate(view.name, _WIDTHS[0] - 1),
                    truncate((current.protocol if current else None) or "-", _WIDTHS[1] - 1),
                    view.status,
                    delay,
                    f"{view.stats.uptime_pct:.0f}%",
                )
            )
        )
        if verbose and current is not None and not current.alive:
            category = current.error.value if current.error else "unknown"
            detail = f": {current.detail}" if current.detail else ""
            lines.append(f"    Error: {category}{detail}")

    summary = snapshot.summary()
    lines += [
        "",
        "=== Summary ===",
        f"Total servers: {summary['total']}",
        f"Alive servers: {summary['alive']}",
        f"Dead servers: {summary['dead']}",
        f"Success rate: {summary['success_rate']:.1f}%",
    ]
    return "\n".join(lines)
