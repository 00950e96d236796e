"""
Geodesic grid over a monitored region.

A Region is split into rows x cols cells centred on the region center. Cells
are cell_size_degrees tall; their width in degrees of longitude is stretched
by 1 / cos(latitude) so that cells are roughly square on the ground. Row 0 is
the northernmost row and column 0 the westernmost column.
"""

import logging
import math
from typing import Callable, List, Optional, Sequence, Tuple

from geopy.distance import geodesic

from canopywatch.errors import InvalidRegion
from canopywatch.models.grid import GridCell, LatLng, RectangleBounds, Region

logger = logging.getLogger(__name__)

Labeler = Callable[[int, int], str]
Edges = Tuple[List[float], List[float], float, float, float, float]


def row_label(row: int) -> str:
    """Spreadsheet-style row letters: 0 -> 'A', 25 -> 'Z', 26 -> 'AA'."""
    letters = ""
    n = row + 1
    while n > 0:
        n, remainder = divmod(n - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def default_label(row: int, col: int) -> str:
    return f"{row_label(row)}{col + 1}"


def _validate(region: Region) -> None:
    if region.rows <= 0 or region.cols <= 0:
        raise InvalidRegion(
            f"Grid dimensions must be positive, got {region.rows} rows x {region.cols} cols"
        )
    if region.cell_size_degrees <= 0:
        raise InvalidRegion(f"Cell size must be positive, got {region.cell_size_degrees}")
    if abs(region.center_lat) >= 90:
        raise InvalidRegion("A grid cannot be centred on a pole")


def grid_steps(region: Region) -> Tuple[float, float]:
    """Returns (lat_step, lng_step) in degrees for the region."""
    _validate(region)
    lat_step = region.cell_size_degrees
    lng_step = region.cell_size_degrees / math.cos(math.radians(region.center_lat))

    half_height = lat_step * region.rows / 2
    half_width = lng_step * region.cols / 2
    if abs(region.center_lat) + half_height > 90 or abs(region.center_lng) + half_width > 180:
        raise InvalidRegion("Grid extends past valid latitude/longitude ranges")
    return lat_step, lng_step


def _edges(region: Region) -> Edges:
    """
    Returns (lat_edges, lng_edges, start_lat, start_lng, lat_step, lng_step).
    lat_edges runs north to south and lng_edges west to east; each edge is
    computed once and shared by the two cells that meet on it.
    """
    lat_step, lng_step = grid_steps(region)
    start_lat = region.center_lat + lat_step * (region.rows - 1) / 2
    start_lng = region.center_lng - lng_step * (region.cols - 1) / 2
    lat_edges = [start_lat + lat_step / 2 - k * lat_step for k in range(region.rows + 1)]
    lng_edges = [start_lng - lng_step / 2 + k * lng_step for k in range(region.cols + 1)]

    # Rounding can carry an outer edge past the limit even when the extent
    # check in grid_steps passed, so the edges themselves are checked too.
    if lat_edges[0] > 90 or lat_edges[-1] < -90 or lng_edges[0] < -180 or lng_edges[-1] > 180:
        raise InvalidRegion(
            f"Grid edges {lat_edges[-1]}..{lat_edges[0]} lat, "
            f"{lng_edges[0]}..{lng_edges[-1]} lng fall outside valid coordinates"
        )
    return lat_edges, lng_edges, start_lat, start_lng, lat_step, lng_step


def build_grid(region: Region, labeler: Optional[Labeler] = None) -> List[GridCell]:
    """
    Partitions the region into rows x cols cells, in row-major order.

    Args:
        region (Region): The region to partition.
        labeler (Optional[Callable[[int, int], str]]): Produces the label of the
            cell at (row, col). Defaults to row letter + column number ('A1').

    Returns:
        List[GridCell]: Exactly rows * cols cells. Cell ids are
                        row * cols + col + 1.

    Raises:
        InvalidRegion: If the region has non-positive dimensions or cell size,
                       is centred on a pole, or spills past valid coordinates.
    """
    lat_edges, lng_edges, start_lat, start_lng, lat_step, lng_step = _edges(region)
    labeler = labeler or default_label

    cells = []
    for row in range(region.rows):
        for col in range(region.cols):
            cells.append(
                GridCell(
                    id=row * region.cols + col + 1,
                    row=row,
                    col=col,
                    center=LatLng(lat=start_lat - row * lat_step, lng=start_lng + col * lng_step),
                    bounds=RectangleBounds(
                        southWest=LatLng(lat=lat_edges[row + 1], lng=lng_edges[col]),
                        northEast=LatLng(lat=lat_edges[row], lng=lng_edges[col + 1]),
                    ),
                    label=labeler(row, col),
                )
            )

    logger.debug(
        "Built %dx%d grid around (%.4f, %.4f)",
        region.rows,
        region.cols,
        region.center_lat,
        region.center_lng,
    )
    return cells


def grid_bounds(region: Region) -> RectangleBounds:
    """Outer extent of the whole grid, matching the outer edges of build_grid."""
    lat_edges, lng_edges = _edges(region)[:2]
    return RectangleBounds(
        southWest=LatLng(lat=lat_edges[-1], lng=lng_edges[0]),
        northEast=LatLng(lat=lat_edges[0], lng=lng_edges[-1]),
    )


def locate_cell(cells: Sequence[GridCell], lat: float, lng: float) -> Optional[GridCell]:
    """
    Finds the cell containing a point, or None outside the grid. A cell owns
    its north and west edges; the outer south and east edges of the grid
    belong to the last row and column.
    """
    if not cells:
        return None

    last_row = max(cell.row for cell in cells)
    last_col = max(cell.col for cell in cells)

    for cell in cells:
        sw, ne = cell.bounds.southWest, cell.bounds.northEast
        south_ok = lat > sw.lat or (cell.row == last_row and lat == sw.lat)
        east_ok = lng < ne.lng or (cell.col == last_col and lng == ne.lng)
        if south_ok and lat <= ne.lat and lng >= sw.lng and east_ok:
            return cell
    return None


def cell_polygon(cell: GridCell) -> List[List[float]]:
    """
    Converts the cell bounds into four [lng, lat] vertices, starting from the
    south-west corner: South-West, North-West, North-East, South-East.
    """
    sw = cell.bounds.southWest
    ne = cell.bounds.northEast
    return [
        [sw.lng, sw.lat],
        [sw.lng, ne.lat],
        [ne.lng, ne.lat],
        [ne.lng, sw.lat],
    ]


def cell_dimensions_km(cell: GridCell) -> Tuple[float, float]:
    """
    Ground width and height of the cell in kilometres, measured through the
    cell center with geodesic distance.
    """
    sw = cell.bounds.southWest
    ne = cell.bounds.northEast
    mid_lat = cell.center.lat
    width_km = geodesic((mid_lat, sw.lng), (mid_lat, ne.lng)).km
    height_km = geodesic((sw.lat, cell.center.lng), (ne.lat, cell.center.lng)).km
    return width_km, height_km
