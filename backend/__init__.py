"""Backend package for the CTP Cluj timetable service."""
