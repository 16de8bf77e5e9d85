"""influxdb package."""
