from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional
import logging

from aggregation.stage.match import Match

if TYPE_CHECKING:
    from aggregation.builder import Builder

logger = logging.getLogger(__name__)


class GeoNear(Match):
    """$geoNear stage. Must be the first stage of a pipeline (checked by the server).

    ``near`` is either a legacy coordinate pair (``GeoNear(b, x, y)``) or a GeoJSON
    point; a bare ``[x, y]`` sequence is wrapped into a point. GeoJSON input turns
    ``spherical`` on. Filter calls (``field()``, ``equals()``...) build ``query``.
    """

    def __init__(self, builder: "Builder", x: Any, y: Any = None):
        super().__init__(builder)
        if y is not None:
            self._near: Any = [x, y]
            self._spherical = False
        else:
            if hasattr(x, "__geo_interface__"):
                x = dict(x.__geo_interface__)
            if isinstance(x, Mapping):
                self._near = dict(x)
            else:
                self._near = {"type": "Point", "coordinates": list(x)}
            self._spherical = str(self._near.get("type", "")).lower() == "point"
        self._distance_field: Optional[str] = None
        self._options: Dict[str, Any] = {}

    def distance_field(self, distance_field: str) -> "GeoNear":
        self._distance_field = str(distance_field)
        return self

    def spherical(self, spherical: bool = True) -> "GeoNear":
        self._spherical = bool(spherical)
        return self

    def distance_multiplier(self, distance_multiplier: float) -> "GeoNear":
        self._options["distanceMultiplier"] = float(distance_multiplier)
        return self

    def include_locs(self, include_locs: str) -> "GeoNear":
        self._options["includeLocs"] = str(include_locs)
        return self

    def max_distance(self, max_distance: float) -> "GeoNear":
        self._options["maxDistance"] = float(max_distance)
        return self

    def min_distance(self, min_distance: float) -> "GeoNear":
        self._options["minDistance"] = float(min_distance)
        return self

    def num(self, num: int) -> "GeoNear":
        self._options["num"] = int(num)
        return self

    def limit(self, limit: int) -> "GeoNear":
        """Fold the limit into this stage's ``num`` instead of appending $limit"""
        logger.debug(f"Folding limit {limit} into $geoNear num")
        return self.num(limit)

    def unique_docs(self, unique_docs: bool = True) -> "GeoNear":
        self._options["uniqueDocs"] = bool(unique_docs)
        return self

    def render_expression(self) -> Dict[str, Any]:
        geo_near: Dict[str, Any] = {
            "near": self._near,
            "spherical": self._spherical,
            "distanceField": self._distance_field,
            "query": self.query.get_query(),
        }
        geo_near.update(self._options)
        return {"$geoNear": geo_near}
