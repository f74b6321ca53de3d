"""Process wiring and background task supervision."""
