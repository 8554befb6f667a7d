"""Settings package: base.py is shared, dev.py and prod.py override it."""
