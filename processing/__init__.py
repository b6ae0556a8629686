"""Alert evaluation, enrichment and delivery for the SkyWatch ADS-B alerter."""
