"""
Domain Entities - Asset History

Raw attribute changes recorded for an asset, and the derived series the
resampling and interpolation services produce from them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Union

ScalarValue = Union[float, int, bool]


@dataclass
class AssetHistoryRow:
    """One recorded change of attribute values on an asset."""

    asset_id: str
    change_date: datetime
    custom_data: Dict[str, ScalarValue] = field(default_factory=dict)
    asset_type_id: Optional[str] = None


@dataclass(frozen=True)
class SeriesPoint:
    """A timestamp with numeric values per attribute."""

    timestamp: datetime
    values: Dict[str, float]
