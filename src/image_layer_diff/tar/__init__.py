"""Reading image layers from docker save tar files."""
