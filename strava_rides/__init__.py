"""Pull a year of Strava rides into a local JSON file."""

__version__ = "0.1.0"
