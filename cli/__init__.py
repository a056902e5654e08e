"""``collector`` command line: run the server or submit a reading."""
