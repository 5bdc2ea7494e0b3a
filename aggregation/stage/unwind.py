from typing import TYPE_CHECKING, Any, Dict, Optional

from aggregation.stage.base import Stage

if TYPE_CHECKING:
    from aggregation.builder import Builder


class Unwind(Stage):
    """$unwind stage; renders the plain path until an option is set"""

    def __init__(self, builder: "Builder", field_name: str):
        super().__init__(builder)
        self._field_name = str(field_name)
        self._include_array_index: Optional[str] = None
        self._preserve_null_and_empty_arrays: Optional[bool] = None

    def include_array_index(self, include_array_index: str) -> "Unwind":
        self._include_array_index = str(include_array_index)
        return self

    def preserve_null_and_empty_arrays(self, preserve: bool = True) -> "Unwind":
        self._preserve_null_and_empty_arrays = bool(preserve)
        return self

    def render_expression(self) -> Dict[str, Any]:
        if self._include_array_index is None and self._preserve_null_and_empty_arrays is None:
            return {"$unwind": self._field_name}

        unwind: Dict[str, Any] = {"path": self._field_name}
        if self._include_array_index is not None:
            unwind["includeArrayIndex"] = self._include_array_index
        if self._preserve_null_and_empty_arrays is not None:
            unwind["preserveNullAndEmptyArrays"] = self._preserve_null_and_empty_arrays
        return {"$unwind": unwind}
