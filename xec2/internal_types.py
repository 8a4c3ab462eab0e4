# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Type hints for JSON-compatible values"""

from typing import Dict, List, Union

# A plain JSON value. Mypy does not support recursive type aliases, so
# nested values are typed loosely.
Jsonable = Union[str, int, float, bool, None, Dict[str, 'Jsonable'], List['Jsonable']]  # type: ignore[misc]
JsonableDict = Dict[str, Jsonable]
JsonableList = List[Jsonable]
