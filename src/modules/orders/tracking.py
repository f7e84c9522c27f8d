"""Simulated courier movement.

Each tick moves the courier a fixed fraction of the remaining way to the
target (linear interpolation per axis).  Once the great-circle distance to
the target falls below the arrival radius the position snaps to the target
and the simulation stops.
"""

from __future__ import annotations

from typing import Iterator, Optional

from shared.domain.geo import Coordinates, haversine_distance_m

DEFAULT_STEP_RATIO = 0.05
DEFAULT_ARRIVAL_RADIUS_M = 10.0


class PositionInterpolator:
    def __init__(
        self,
        position: Coordinates,
        target: Coordinates,
        step_ratio: float = DEFAULT_STEP_RATIO,
        arrival_radius_m: float = DEFAULT_ARRIVAL_RADIUS_M,
    ) -> None:
        if not 0 < step_ratio <= 1:
            raise ValueError(f"step_ratio must be in (0, 1], got {step_ratio}")
        if arrival_radius_m < 0:
            raise ValueError("arrival_radius_m cannot be negative")
        self.position = position
        self.target = target
        self.step_ratio = step_ratio
        self.arrival_radius_m = arrival_radius_m
        self._arrived = False
        self._snap_if_close(position)

    @property
    def arrived(self) -> bool:
        return self._arrived

    def distance_to_target_m(self) -> float:
        return haversine_distance_m(self.position, self.target)

    def tick(self) -> Coordinates:
        """Advance one step and return the new position."""
        if self._arrived:
            return self.position
        candidate = Coordinates(
            lat=self.position.lat + (self.target.lat - self.position.lat) * self.step_ratio,
            lng=self.position.lng + (self.target.lng - self.position.lng) * self.step_ratio,
        )
        self._snap_if_close(candidate)
        return self.position

    def ticks(self, limit: Optional[int] = None) -> Iterator[Coordinates]:
        """Yield successive positions until arrival or ``limit`` steps."""
        count = 0
        while not self._arrived and (limit is None or count < limit):
            yield self.tick()
            count += 1

    def _snap_if_close(self, candidate: Coordinates) -> None:
        if haversine_distance_m(candidate, self.target) < self.arrival_radius_m:
            self.position = self.target
            self._arrived = True
        else:
            self.position = candidate
