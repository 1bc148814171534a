"""Classification rules - deployment-specific region and type-code tables."""

from typing import Optional

from pydantic import Field, model_validator

from incident_stats.models.base import StatsModel


class BoundingBox(StatsModel):
    """Inclusive latitude/longitude rectangle."""

    lat_min: float = Field(..., ge=-90, le=90)
    lat_max: float = Field(..., ge=-90, le=90)
    lon_min: float = Field(..., ge=-180, le=180)
    lon_max: float = Field(..., ge=-180, le=180)

    @model_validator(mode="after")
    def validate_ranges(self) -> "BoundingBox":
        if self.lat_min > self.lat_max or self.lon_min > self.lon_max:
            raise ValueError("bounding box minimums must be <= maximums")
        return self

    def contains(self, latitude: float, longitude: float) -> bool:
        return (
            self.lat_min <= latitude <= self.lat_max
            and self.lon_min <= longitude <= self.lon_max
        )


class RegionRule(StatsModel):
    """A named region matched by station id or by coordinates."""

    name: str = Field(..., min_length=1)
    stations: list[str] = Field(
        default_factory=list, description="Station ids; matched as substrings of the record's station"
    )
    bounds: Optional[BoundingBox] = None


class IncidentTypeRules(StatsModel):
    """Type-code prefixes per bucket.

    Checked in the order medical, fire, cancelled, downgraded. Cancelled
    codes are a narrow slice of the downgrade range, so they must be tested
    first.
    """

    medical: list[str] = Field(default_factory=lambda: ["3"])
    fire: list[str] = Field(default_factory=lambda: ["1", "4", "5"])
    cancelled: list[str] = Field(default_factory=lambda: ["61"])
    downgraded: list[str] = Field(default_factory=lambda: ["6", "7"])


def default_regions() -> list[RegionRule]:
    """San Juan Island station groups and coordinate boxes.

    The boxes share edges; central is listed first so it owns them.
    """
    return [
        RegionRule(
            name="central",
            stations=["31", "36"],
            bounds=BoundingBox(lat_min=48.52, lat_max=48.55, lon_min=-123.05, lon_max=-122.98),
        ),
        RegionRule(
            name="north",
            stations=["34", "35"],
            bounds=BoundingBox(lat_min=48.55, lat_max=48.70, lon_min=-123.20, lon_max=-122.90),
        ),
        RegionRule(
            name="south",
            stations=["32", "33"],
            bounds=BoundingBox(lat_min=48.40, lat_max=48.52, lon_min=-123.10, lon_max=-122.95),
        ),
    ]


class ClassificationRules(StatsModel):
    """Everything the classifier and reconciler need to know about a district."""

    regions: list[RegionRule] = Field(default_factory=default_regions)
    default_region: str = Field("other", description="Region for unmatched incidents")
    incident_types: IncidentTypeRules = Field(default_factory=IncidentTypeRules)
    backfill_types: list[str] = Field(
        default_factory=lambda: ["571"], description="Standby/backfill code prefixes"
    )
    pov_apparatus: list[str] = Field(
        default_factory=lambda: ["POV"], description="Names meaning personally-owned vehicle"
    )
