"""Domain layer: setlist ordering and roster assignment."""
