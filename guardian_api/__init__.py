"""Guardian ingest service: telemetría de dispositivos, alertas y pushes en tiempo real."""
