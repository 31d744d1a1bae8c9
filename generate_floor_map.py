from typing import Dict, Iterable, List, Optional

import networkx as nx
from pyvis.network import Network

from dining_room.capacity import capacity
from dining_room.grouping import neighbours, resolve_all_groups
from dining_room.models import Coord, Reservation, Table, TableState

# ---------------------------
# Public API
# ---------------------------

def generate_floor_map(
    tables: Iterable[Table],
    bindings: Optional[Dict[Coord, List[Reservation]]] = None,
    cell_size: int = 90,
) -> str:
    """
    Build an interactive floor plan of one configuration.

    Parameters:
      tables: snapshot of the configuration's tables.
      bindings: reservations bound to each table, keyed by coordinate.
      cell_size: distance in pixels between two grid cells.

    Returns:
      HTML string with embedded network.
    """
    tables = list(tables)
    bindings = bindings or {}
    groups = resolve_all_groups(tables)

    G = nx.Graph()

    # Colors per group
    palette = [
        "#FFB347", "#77DD77", "#AEC6CF", "#C23B22", "#F49AC2", "#B39EB5",
        "#03C03C", "#779ECB", "#966FD6", "#FFD700", "#FF6961", "#CB99C9",
        "#CFCFC4", "#FDFD96", "#84B6F4", "#FDCAe1",
    ]

    # Nodes
    for i, group in enumerate(groups):
        seats = capacity(group)
        for table in group:
            node = _node_id(table.coord)
            reserved = bindings.get(table.coord, [])
            G.add_node(
                node,
                label=f"{table.x},{table.y}",
                title=_node_tooltip(table, i + 1, seats, reserved),
                color=palette[i % len(palette)],
                x=table.x * cell_size,
                y=table.y * cell_size,
                physics=False,
                borderWidth=_border_width(table.state),
                shape="square",
                size=24,
            )

    # Edges: one per shared side, east and south only
    present = {t.coord for t in tables}
    for c in present:
        for nxt in neighbours(c)[::2]:
            if nxt in present:
                G.add_edge(_node_id(c), _node_id(nxt), color="#EEEEEE", width=4)

    # Build pyvis network
    net = Network(height="700px", width="100%", bgcolor="#111111", font_color="#EEEEEE")
    net.toggle_physics(False)  # positions are fixed
    net.from_nx(G)

    # Legend overlay
    return _inject_legend_html(net.generate_html())

# ---------------------------
# Internals
# ---------------------------

def _node_id(coord: Coord) -> str:
    return f"{coord.x},{coord.y}"


def _border_width(state: TableState) -> int:
    return {TableState.FREE: 1, TableState.RESERVED: 4, TableState.OCCUPIED: 8}[state]


def _node_tooltip(table: Table, group_no: int, seats: int, reserved: List[Reservation]) -> str:
    names = ", ".join(
        f"{r.name} {r.time.strftime('%H:%M')}" if r.time else r.name for r in reserved
    ) or "none"
    return (
        f"<b>Table {table.x},{table.y}</b><br>"
        f"State: {table.state.value}<br>"
        f"Group: {group_no} ({seats} seats)<br>"
        f"Reservations: {names}"
    )


def _inject_legend_html(page: str) -> str:
    css = """
    <style>
    .legend-box{
      position:absolute;right:12px;bottom:12px;
      background:#222;color:#eee;border:1px solid #444;border-radius:8px;
      padding:8px 12px;font-family:system-ui, -apple-system, Segoe UI, Roboto, Arial;font-size:12px;
      z-index:10;
    }
    </style>
    """
    html = f"""
    {css}
    <div class="legend-box">
      <div>node color: group</div>
      <div>thin border: free</div>
      <div>thick border: reserved</div>
      <div>thickest border: occupied</div>
      <div style="margin-top:6px;">edge: joined tables</div>
    </div>
    """
    if "</body>" in page:
        return page.replace("</body>", html + "</body>", 1)
    return page + html
