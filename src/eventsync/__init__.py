"""eventsync: mirror event-platform webhook deliveries into forum topics."""
