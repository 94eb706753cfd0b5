from skill_matrix.infrastructure.events.change_feed import ChangeEvent


class RecordingPublisher:
    """Collects published change events."""

    def __init__(self) -> None:
        self.events: list[ChangeEvent] = []

    def publish(self, event: ChangeEvent) -> None:
        self.events.append(event)

    def tables(self) -> list[str]:
        return [e.table for e in self.events]
