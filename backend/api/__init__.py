"""HTTP routes exposing the timetable snapshot."""
