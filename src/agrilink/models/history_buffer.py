"""
Fixed-capacity circular buffers holding the most recent readings per plant.
O(1) append, oldest entries are overwritten once the buffer is full.
"""
from typing import Dict, Generic, List, Optional, TypeVar

from agrilink.models.plant import PlantSlot

T = TypeVar("T")


class CircularBuffer(Generic[T]):
    """
    Ring of at most `capacity` items in arrival order.
    - O(1) insertion at the end
    - Fixed capacity, overwrites oldest when full
    """

    __slots__ = ('capacity', 'buffer', 'write_index', 'count')

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"Capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.buffer: List[Optional[T]] = [None] * capacity
        self.write_index = 0  # Next position to write
        self.count = 0  # Number of valid entries (0 to capacity)

    def append(self, item: T) -> None:
        self.buffer[self.write_index] = item
        self.write_index = (self.write_index + 1) % self.capacity
        if self.count < self.capacity:
            self.count += 1

    def get_all(self) -> List[T]:
        """All valid entries, oldest first."""
        start = self.write_index - self.count
        return [self.buffer[(start + i) % self.capacity] for i in range(self.count)]


class PlantHistory(Generic[T]):
    """One CircularBuffer per plant slot."""

    __slots__ = ('capacity', 'buffers')

    def __init__(self, capacity: int):
        self.capacity = capacity
        self.buffers: Dict[PlantSlot, CircularBuffer[T]] = {
            plant: CircularBuffer(capacity) for plant in PlantSlot
        }

    def append(self, plant: PlantSlot, item: T) -> None:
        self.buffers[plant].append(item)

    def get_data(self, plant: PlantSlot) -> List[T]:
        return self.buffers[plant].get_all()
